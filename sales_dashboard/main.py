import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sales_dashboard import __version__
from sales_dashboard.db.base import Base
from sales_dashboard.db.session import SessionLocal, engine
from sales_dashboard.routers.analytics import router as analytics_router
from sales_dashboard.routers.maps import router as maps_router
from sales_dashboard.routers.sales import router as sales_router
from sales_dashboard.services.sales_repository import clear_sales_data

# --------------------------------------------------
# LOGGING
# --------------------------------------------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# --------------------------------------------------
# STARTUP
# --------------------------------------------------
def init_store() -> None:
    """Create tables and start from an empty snapshot."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        deleted = clear_sales_data(db)
        logger.info("Sales store initialised (cleared %s stale rows)", deleted)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        init_store()
    except Exception:
        logger.exception("DB init failed")
    yield


# --------------------------------------------------
# APP
# --------------------------------------------------
app = FastAPI(
    title="India Sales Dashboard API",
    description="Excel ingestion, geocoding and market analytics for the sales dashboard",
    version=__version__,
    lifespan=lifespan,
)

# --------------------------------------------------
# CORS
# --------------------------------------------------
_origins = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --------------------------------------------------
# ROUTERS
# --------------------------------------------------
app.include_router(sales_router)
app.include_router(analytics_router)
app.include_router(maps_router)


# --------------------------------------------------
# HEALTH CHECK
# --------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/")
def root():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
