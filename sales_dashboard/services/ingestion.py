import logging
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Iterator

import pandas as pd
from sqlalchemy.orm import Session

from sales_dashboard.models.schemas import SalesRecordCreate, SalesRecordOut
from sales_dashboard.services.geocoding import Geocoder
from sales_dashboard.services.row_normalizer import RowRejection, normalize_row
from sales_dashboard.services.sales_repository import replace_sales_data

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/vnd.oasis.opendocument.spreadsheet",
}
EMPTY_FILE_MESSAGE = (
    "No valid data found in the Excel file. Please check the format and required columns."
)


class UnsupportedUpload(ValueError):
    pass


class EmptyOrInvalidFile(ValueError):
    pass


@dataclass
class IngestionResult:
    records: list[SalesRecordOut]
    skipped: list[RowRejection] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


def validate_upload(content_type: str | None, size: int) -> None:
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedUpload("Invalid file type. Please upload an Excel file.")
    if size > MAX_UPLOAD_BYTES:
        raise UnsupportedUpload("File too large. Maximum upload size is 10MB.")


def _clean_value(value: Any) -> Any:
    if isinstance(value, float) and (value != value or value == float("inf") or value == float("-inf")):
        return None
    return value


def read_workbook_rows(contents: bytes) -> Iterator[dict]:
    """Yield the first worksheet's rows as header-keyed dicts."""
    df = pd.read_excel(BytesIO(contents), sheet_name=0)
    df.columns = [str(col).strip() for col in df.columns]
    df = df.astype(object).where(pd.notnull(df), None)
    for row in df.to_dict(orient="records"):
        yield {key: _clean_value(value) for key, value in row.items()}


def normalize_rows(
    rows: Iterator[dict],
    geocoder: Geocoder | None,
) -> tuple[list[SalesRecordCreate], list[RowRejection]]:
    accepted: list[SalesRecordCreate] = []
    rejected: list[RowRejection] = []
    # row_number is the spreadsheet line, header is line 1
    for row_number, row in enumerate(rows, start=2):
        outcome = normalize_row(row, geocoder=geocoder, row_number=row_number)
        if isinstance(outcome, RowRejection):
            rejected.append(outcome)
        else:
            accepted.append(outcome)
    return accepted, rejected


def ingest_workbook(
    db: Session,
    contents: bytes,
    content_type: str | None,
    geocoder: Geocoder | None = None,
) -> IngestionResult:
    """
    Parse an uploaded workbook and replace the store with its valid rows.

    Raises UnsupportedUpload before any parsing, and EmptyOrInvalidFile when no
    row survives normalization (the store is left untouched in both cases).
    Parse failures from pandas propagate unchanged.
    """
    validate_upload(content_type, len(contents))

    accepted, rejected = normalize_rows(read_workbook_rows(contents), geocoder)
    if not accepted:
        logger.warning("INGEST: no valid rows (skipped=%s)", len(rejected))
        raise EmptyOrInvalidFile(EMPTY_FILE_MESSAGE)

    records = replace_sales_data(db, accepted)
    logger.info("INGEST: rows_inserted=%s skipped=%s", len(records), len(rejected))
    return IngestionResult(records=records, skipped=rejected)
