import csv
import io

import pytest

from conftest import BENGALURU, MUMBAI, XLSX_MIME, make_workbook

EMPTY_MESSAGE = "No valid data found in the Excel file. Please check the format and required columns."


def _upload(client, contents, content_type=XLSX_MIME, filename="sales.xlsx"):
    return client.post("/api/upload-excel", files={"file": (filename, contents, content_type)})


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_store_starts_empty(client):
    response = client.get("/api/sales-data")
    assert response.status_code == 200
    assert response.json() == []


def test_upload_replaces_store(client):
    _upload(client, make_workbook([MUMBAI]))

    response = _upload(client, make_workbook([BENGALURU, {"State": "", "City": "Pune"}]))

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Successfully imported 1 records"
    assert body["count"] == 1
    assert body["skipped"] == 1
    assert body["data"][0]["city"] == "Bengaluru"
    assert body["data"][0]["total"] == 250

    listing = client.get("/api/sales-data").json()
    assert [r["city"] for r in listing] == ["Bengaluru"]
    assert set(listing[0]) == {
        "id", "state", "city", "latitude", "longitude",
        "sales2022", "sales2023", "sales2024", "sales2025", "total",
    }


def test_upload_skips_row_with_oversized_count(client):
    oversized = {**MUMBAI, "2023": "99999999999999999999"}

    response = _upload(client, make_workbook([BENGALURU, oversized]))

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["skipped"] == 1
    assert [r["city"] for r in client.get("/api/sales-data").json()] == ["Bengaluru"]


def test_upload_without_file(client):
    response = client.post("/api/upload-excel", files={"other": ("notes.txt", b"x", "text/plain")})
    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_upload_rejects_non_spreadsheet(client):
    response = _upload(client, b"a,b\n1,2\n", content_type="text/csv", filename="sales.csv")
    assert response.status_code == 400
    assert "Excel" in response.json()["detail"]


def test_upload_with_no_valid_rows_keeps_previous_data(client):
    _upload(client, make_workbook([MUMBAI]))

    response = _upload(client, make_workbook([{"State": "Goa", "City": "Panaji"}]))

    assert response.status_code == 400
    assert response.json()["detail"] == EMPTY_MESSAGE
    assert [r["city"] for r in client.get("/api/sales-data").json()] == ["Mumbai"]


def test_upload_with_corrupt_workbook_is_server_error(client):
    response = _upload(client, b"PK\x03\x04 broken")
    assert response.status_code == 500


def test_analytics_empty(client):
    assert client.get("/api/analytics").json() == {
        "totalMarkets": 0,
        "totalSales2024": 0,
        "avgGrowthRate": 0.0,
        "marketPenetration": 0.0,
        "activeMarkets": 0,
        "growthMarkets": 0,
        "emergingMarkets": 0,
    }


def test_analytics_after_upload(client):
    _upload(client, make_workbook([BENGALURU, MUMBAI]))

    metrics = client.get("/api/analytics").json()

    assert metrics["totalMarkets"] == 2
    assert metrics["totalSales2024"] == 260
    # Bengaluru 50.0%, Mumbai 60.0%
    assert metrics["avgGrowthRate"] == 55.0
    assert metrics["growthMarkets"] == 2
    assert metrics["emergingMarkets"] == 1
    assert metrics["marketPenetration"] == 100.0


def test_clear_sales_data(client):
    _upload(client, make_workbook([BENGALURU]))

    response = client.post("/api/clear-sales-data")

    assert response.json() == {"message": "Sales data cleared"}
    assert client.get("/api/sales-data").json() == []


def test_listing_search_and_sort(client):
    _upload(client, make_workbook([BENGALURU, MUMBAI]))

    by_total = client.get("/api/sales-data", params={"sort_by": "total", "order": "desc"}).json()
    assert [r["city"] for r in by_total] == ["Mumbai", "Bengaluru"]

    found = client.get("/api/sales-data", params={"search": "karna"}).json()
    assert [r["city"] for r in found] == ["Bengaluru"]


@pytest.mark.parametrize("params", [{"sort_by": "population"}, {"order": "sideways"}])
def test_listing_rejects_bad_params(client, params):
    assert client.get("/api/sales-data", params=params).status_code == 400


def test_export_csv(client):
    _upload(client, make_workbook([BENGALURU]))

    response = client.get("/api/sales-data/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == ["City", "State", "2022", "2023", "2024", "2025", "Total", "Growth Rate"]
    assert rows[1] == ["Bengaluru", "Karnataka", "100", "0", "0", "150", "250", "50.0%"]


def test_export_json(client):
    _upload(client, make_workbook([BENGALURU]))
    data = client.get("/api/sales-data/export", params={"format": "json"}).json()
    assert data[0]["Growth Rate"] == "50.0%"


def test_map_points_for_year_range(client):
    _upload(client, make_workbook([MUMBAI]))

    points = client.get("/api/map-points", params=[("years", "2024"), ("years", "2025")]).json()

    assert points[0]["sales"] == 580
    assert points[0]["weight"] == pytest.approx(0.58)
    assert points[0]["growthRate"] == 60.0


def test_map_points_unknown_year(client):
    assert client.get("/api/map-points", params={"years": "1999"}).status_code == 400


def test_maps_config_without_key(client):
    assert client.get("/api/maps-config").json() == {"apiKey": None}


def test_maps_config_uses_fallback_key(client, monkeypatch):
    monkeypatch.setenv("GOOGLE_GEOCODING_API", "fallback-key")
    assert client.get("/api/maps-config").json() == {"apiKey": "fallback-key"}


def test_geocode_proxy_returns_raw_payload(client, geocoder):
    geocoder.raw = {"status": "OK", "results": [{"geometry": {"location": {"lat": 1.0, "lng": 2.0}}}]}

    response = client.post("/api/geocode", json={"address": "Mumbai, Maharashtra, India"})

    assert response.status_code == 200
    assert response.json() == geocoder.raw
    assert geocoder.calls == ["Mumbai, Maharashtra, India"]


def test_geocode_proxy_without_key(client, geocoder):
    geocoder.enabled = False
    response = client.post("/api/geocode", json={"address": "Mumbai"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Google Maps API key not configured"
