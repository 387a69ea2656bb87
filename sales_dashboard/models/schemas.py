from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NON_EMPTY_TEXT = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
COORDINATE = Annotated[float, Field(allow_inf_nan=False)]
# bounded by the 32-bit INTEGER columns the records are stored in
INT32_MAX = 2**31 - 1
UNIT_COUNT = Annotated[int, Field(ge=0, le=INT32_MAX)]


class SalesRecordCreate(BaseModel):
    state: NON_EMPTY_TEXT
    city: NON_EMPTY_TEXT
    latitude: COORDINATE
    longitude: COORDINATE
    sales2022: UNIT_COUNT = 0
    sales2023: UNIT_COUNT = 0
    sales2024: UNIT_COUNT = 0
    sales2025: UNIT_COUNT = 0
    total: UNIT_COUNT = 0


class SalesRecordOut(SalesRecordCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


class UploadResponse(BaseModel):
    message: str
    count: int
    skipped: int = 0
    data: list[SalesRecordOut]


class AnalyticsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_markets: int = Field(0, alias="totalMarkets")
    total_sales_2024: int = Field(0, alias="totalSales2024")
    avg_growth_rate: float = Field(0.0, alias="avgGrowthRate")
    market_penetration: float = Field(0.0, alias="marketPenetration")
    active_markets: int = Field(0, alias="activeMarkets")
    growth_markets: int = Field(0, alias="growthMarkets")
    emerging_markets: int = Field(0, alias="emergingMarkets")


class MapPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    state: str
    city: str
    latitude: float
    longitude: float
    sales: int
    weight: float
    growth_rate: float = Field(..., alias="growthRate")


class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1)


class MapsConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str | None = Field(None, alias="apiKey")


class MessageResponse(BaseModel):
    message: str
