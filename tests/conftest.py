import os
from io import BytesIO

os.environ["DATABASE_URL"] = "sqlite://"

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from sales_dashboard.db.base import Base
from sales_dashboard.db.session import SessionLocal, engine
from sales_dashboard.main import app
from sales_dashboard.services.geocoding import Coordinates, GeocodingResolver, get_geocoder
from sales_dashboard.services.sales_repository import clear_sales_data

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FakeGeocoder:
    """Records every address and answers from a fixed table."""

    def __init__(self, answers=None, enabled=True, raw=None):
        self.answers = answers or {}
        self.enabled = enabled
        self.raw = raw or {"status": "OK", "results": []}
        self.calls = []

    def resolve(self, address):
        self.calls.append(address)
        return self.answers.get(address)

    def lookup(self, address):
        self.calls.append(address)
        return self.raw


def make_workbook(rows, columns=None) -> bytes:
    buf = BytesIO()
    pd.DataFrame(rows, columns=columns).to_excel(buf, index=False, engine="openpyxl")
    return buf.getvalue()


BENGALURU = {
    "State": "Karnataka",
    "City": "Bengaluru",
    "2022": 100,
    "2025": 150,
    "Latitude": 12.97,
    "Longitude": 77.59,
}
MUMBAI = {
    "State": "Maharashtra",
    "City": "Mumbai",
    "2022": 200,
    "2023": 220,
    "2024": 260,
    "2025": 320,
    "Total": 1000,
    "Latitude": 19.07,
    "Longitude": 72.87,
}


@pytest.fixture(autouse=True)
def _no_maps_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_MAP_API", raising=False)
    monkeypatch.delenv("GOOGLE_GEOCODING_API", raising=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    clear_sales_data(session)
    try:
        yield session
    finally:
        clear_sales_data(session)
        session.close()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def client(geocoder):
    app.dependency_overrides[get_geocoder] = lambda: geocoder
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def offline_geocoder():
    return GeocodingResolver(api_key=None)


@pytest.fixture
def bengaluru_point():
    return Coordinates(latitude=12.9716, longitude=77.5946)
