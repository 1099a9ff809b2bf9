from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
import logging

from compass_gps.config import get_settings
from compass_gps.dependencies.services import get_api_cache, get_compass_client, get_gps_store
from compass_gps.exceptions import CompassApiError, CompassGPSError, CompassNotFoundError, ConfigurationError
from compass_gps.models.modem_gps import gps_fix_out
from compass_gps.schemas.modem import ModemStatus
from compass_gps.utils.cache import TTLCache
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.modem_details import build_modem_view
from compass_gps.utils.modem_gps import ModemGPSStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Modems"])


@router.get("/modem/{provider}/{modem_id}")
def get_modem(
    provider: str,
    modem_id: str,
    client: CompassClient = Depends(get_compass_client),
    cache: TTLCache = Depends(get_api_cache),
    store: ModemGPSStore = Depends(get_gps_store),
):
    """Modem telemetry series plus the last stored GPS fix."""
    cache_key = f"modem-{provider.lower()}-{modem_id}"
    try:
        view = cache.get_or_fetch(
            cache_key, lambda: build_modem_view(client.get_modem_details(provider, modem_id)))
    except CompassNotFoundError:
        return JSONResponse(
            status_code=404,
            content={"status": ModemStatus.not_found.value, "error": "Modem not found", "modem": None},
        )
    except ConfigurationError as e:
        logger.error(f"🔴 {e}")
        return JSONResponse(status_code=500, content={"status": ModemStatus.error.value, "error": "Server configuration error"})
    except CompassGPSError as e:
        logger.error(f"🔴 Error fetching modem details: {e}")
        status_code = e.status_code if isinstance(e, CompassApiError) and e.status_code else 500
        return JSONResponse(
            status_code=status_code,
            content={"status": ModemStatus.error.value, "error": str(e), "modem": None},
        )

    # GPS is best-effort; a store failure leaves gpsData empty
    gps_data = {}
    try:
        record = store.get_latest(modem_id, provider.lower())
        if record:
            gps_data = gps_fix_out(record)
    except PyMongoError as e:
        logger.warning(f"⚠️ Error fetching GPS data: {e}")

    return {**view, "gpsData": gps_data, "mapsAPIKey": get_settings().google_maps_api_key}


@router.get("/services")
def list_services(
    client: CompassClient = Depends(get_compass_client),
    cache: TTLCache = Depends(get_api_cache),
):
    """Company service catalog with each service's modems."""
    try:
        services = cache.get_or_fetch("services", client.list_services)
    except ConfigurationError as e:
        logger.error(f"🔴 {e}")
        return JSONResponse(status_code=500, content={"error": "Server configuration error"})
    except CompassGPSError as e:
        logger.error(f"Error fetching services data: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
    return {"services": services}
