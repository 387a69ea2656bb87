# routers/analytics.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sales_dashboard.db.deps import get_db
from sales_dashboard.models.schemas import AnalyticsResponse, MapPoint
from sales_dashboard.services.analytics_engine import build_map_points, summarize
from sales_dashboard.services.sales_repository import get_all_sales_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analytics"])


@router.get("/analytics", response_model=AnalyticsResponse)
def analytics_summary(db: Session = Depends(get_db)):
    try:
        records = get_all_sales_data(db)
    except SQLAlchemyError:
        logger.exception("Failed to calculate analytics")
        raise HTTPException(status_code=500, detail="Failed to calculate analytics")
    return AnalyticsResponse.model_validate(summarize(records))


@router.get("/map-points", response_model=list[MapPoint])
def map_points(
    years: list[str] | None = Query(None),
    db: Session = Depends(get_db),
):
    """
    Per-city sales for the selected years, weighted for the heatmap layer.
    Defaults to all tracked years.
    """
    try:
        records = get_all_sales_data(db)
    except SQLAlchemyError:
        logger.exception("Failed to fetch sales data")
        raise HTTPException(status_code=500, detail="Failed to fetch sales data")

    try:
        return build_map_points(records, years)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
