import logging
from http.client import HTTPException as HTTPClientError
from urllib.error import URLError

from fastapi import APIRouter, Depends, HTTPException

from sales_dashboard.models.schemas import GeocodeRequest, MapsConfigResponse
from sales_dashboard.services.geocoding import GeocodingResolver, get_geocoder, get_maps_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["maps"])


@router.post("/geocode")
def geocode_proxy(
    payload: GeocodeRequest,
    geocoder: GeocodingResolver = Depends(get_geocoder),
):
    if not geocoder.enabled:
        raise HTTPException(status_code=500, detail="Google Maps API key not configured")

    try:
        return geocoder.lookup(payload.address)
    except (URLError, HTTPClientError, TimeoutError, ValueError, OSError) as exc:
        logger.warning("Geocode proxy failed for %s: %s", payload.address, exc)
        raise HTTPException(status_code=500, detail="Geocoding failed")


@router.get("/maps-config", response_model=MapsConfigResponse)
def maps_config():
    return MapsConfigResponse(api_key=get_maps_api_key())
