# models/sales_records.py

from sqlalchemy import Column, Float, Integer, String
from sales_dashboard.db.base import Base


class SalesRecord(Base):
    __tablename__ = "sales_records"

    id = Column(Integer, primary_key=True, index=True)
    state = Column(String, nullable=False, index=True)
    city = Column(String, nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    sales2022 = Column(Integer, nullable=False, default=0)
    sales2023 = Column(Integer, nullable=False, default=0)
    sales2024 = Column(Integer, nullable=False, default=0)
    sales2025 = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)  # supplied total or sum of years
