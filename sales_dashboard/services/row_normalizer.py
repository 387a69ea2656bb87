import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import ValidationError

from sales_dashboard.models.schemas import SalesRecordCreate
from sales_dashboard.services.geocoding import Geocoder

logger = logging.getLogger(__name__)

# Header variants tried in order; the first non-blank value wins.
STATE_KEYS = ("State", "state")
CITY_KEYS = ("City", "city")
LATITUDE_KEYS = ("Latitude", "latitude")
LONGITUDE_KEYS = ("Longitude", "longitude")
TOTAL_KEYS = ("Total", "total")
YEAR_KEYS = {
    "sales2022": ("2022", 2022),
    "sales2023": ("2023", 2023),
    "sales2024": ("2024", 2024),
    "sales2025": ("2025", 2025),
}

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class RowRejection:
    row_number: int
    reason: str


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def lookup(row: Mapping[Any, Any], keys: tuple, default: Any = None) -> Any:
    for key in keys:
        value = row.get(key)
        if not _is_blank(value):
            return value
    return default


def to_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def to_int(value: Any) -> int:
    """Leading-integer parse; anything unusable is 0."""
    if _is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else 0


def to_float(value: Any) -> float:
    """Leading-float parse; anything unusable is 0.0."""
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    match = _FLOAT_PREFIX.match(str(value))
    if not match:
        return 0.0
    number = float(match.group(1))
    return number if math.isfinite(number) else 0.0


def _sheet_coordinates(row: Mapping[Any, Any]) -> tuple[float, float]:
    return to_float(lookup(row, LATITUDE_KEYS)), to_float(lookup(row, LONGITUDE_KEYS))


def resolve_coordinates(
    row: Mapping[Any, Any],
    state: str,
    city: str,
    geocoder: Geocoder | None,
) -> tuple[float, float]:
    if geocoder is not None and geocoder.enabled and state and city:
        resolved = geocoder.resolve(f"{city}, {state}, India")
        if resolved is not None:
            return resolved.latitude, resolved.longitude
    return _sheet_coordinates(row)


def normalize_row(
    row: Mapping[Any, Any],
    geocoder: Geocoder | None = None,
    row_number: int = 0,
) -> SalesRecordCreate | RowRejection:
    """
    Turn one spreadsheet row into a validated record candidate.

    Never raises for bad data: a row that cannot become a record is returned
    as a RowRejection and logged.
    """
    state = to_text(lookup(row, STATE_KEYS))
    city = to_text(lookup(row, CITY_KEYS))
    if not state or not city:
        return _reject(row_number, "missing state or city", row)

    sales = {field: to_int(lookup(row, keys)) for field, keys in YEAR_KEYS.items()}
    supplied_total = to_int(lookup(row, TOTAL_KEYS))

    latitude, longitude = resolve_coordinates(row, state, city, geocoder)
    if latitude == 0 or longitude == 0:
        return _reject(row_number, f"no usable location for {city}, {state}", row)

    try:
        return SalesRecordCreate(
            state=state,
            city=city,
            latitude=latitude,
            longitude=longitude,
            total=supplied_total or sum(sales.values()),
            **sales,
        )
    except ValidationError as exc:
        return _reject(row_number, f"schema validation failed: {exc.error_count()} error(s)", row)


def _reject(row_number: int, reason: str, row: Mapping[Any, Any]) -> RowRejection:
    logger.warning("Skipping invalid row %s (%s): %s", row_number, reason, dict(row))
    return RowRejection(row_number=row_number, reason=reason)
