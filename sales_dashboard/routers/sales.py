import json
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from sales_dashboard.db.deps import get_db
from sales_dashboard.models.schemas import MessageResponse, SalesRecordOut, UploadResponse
from sales_dashboard.services.analytics_engine import export_frame, filter_records, sort_records
from sales_dashboard.services.geocoding import GeocodingResolver, get_geocoder
from sales_dashboard.services.ingestion import (
    MAX_UPLOAD_BYTES,
    EmptyOrInvalidFile,
    UnsupportedUpload,
    ingest_workbook,
    validate_upload,
)
from sales_dashboard.services.sales_repository import clear_sales_data, get_all_sales_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sales"])


def _load_records(db: Session) -> list[SalesRecordOut]:
    try:
        return get_all_sales_data(db)
    except SQLAlchemyError:
        logger.exception("Failed to fetch sales data")
        raise HTTPException(status_code=500, detail="Failed to fetch sales data")


@router.get("/sales-data", response_model=list[SalesRecordOut])
def list_sales_data(
    search: str | None = Query(None),
    sort_by: str | None = Query(None),
    order: str = Query("asc"),
    db: Session = Depends(get_db),
):
    direction = (order or "asc").strip().lower()
    if direction not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="order must be asc or desc")

    records = filter_records(_load_records(db), search)
    try:
        return sort_records(records, sort_by, descending=direction == "desc")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/sales-data/export")
def export_sales_data(
    format: str = Query("csv"),
    db: Session = Depends(get_db),
):
    fmt = (format or "csv").strip().lower()
    if fmt not in {"csv", "json"}:
        raise HTTPException(status_code=400, detail="format must be csv or json")

    df = export_frame(_load_records(db))

    if fmt == "json":
        content = json.dumps(df.to_dict(orient="records")).encode("utf-8")
        media_type = "application/json"
        filename = "sales-data.json"
    else:
        content = df.to_csv(index=False).encode("utf-8")
        media_type = "text/csv"
        filename = "sales-data.csv"

    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/upload-excel", response_model=UploadResponse)
async def upload_excel(
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    geocoder: GeocodingResolver = Depends(get_geocoder),
):
    logger.info(
        "Upload request received: has_file=%s content_type=%s",
        file is not None,
        file.content_type if file is not None else None,
    )
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    # read one byte past the cap so oversize files are detected without loading them whole
    contents = await file.read(MAX_UPLOAD_BYTES + 1)
    try:
        validate_upload(file.content_type, len(contents))
        result = await run_in_threadpool(
            ingest_workbook,
            db,
            contents,
            file.content_type,
            geocoder,
        )
    except (UnsupportedUpload, EmptyOrInvalidFile) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("Upload failed while replacing sales data")
        raise HTTPException(status_code=500, detail="Failed to store sales data")
    except Exception as exc:
        logger.exception("Upload error")
        raise HTTPException(status_code=500, detail=str(exc) or "Failed to process Excel file")

    logger.info(
        "UPLOAD: file=%s rows=%s skipped=%s",
        file.filename,
        result.count,
        len(result.skipped),
    )
    return UploadResponse(
        message=f"Successfully imported {result.count} records",
        count=result.count,
        skipped=len(result.skipped),
        data=result.records,
    )


@router.post("/clear-sales-data", response_model=MessageResponse)
def clear_all_sales_data(db: Session = Depends(get_db)):
    try:
        deleted = clear_sales_data(db)
    except SQLAlchemyError:
        logger.exception("Failed to clear sales data")
        raise HTTPException(status_code=500, detail="Failed to clear sales data")
    logger.info("CLEAR: deleted_rows=%s", deleted)
    return {"message": "Sales data cleared"}
