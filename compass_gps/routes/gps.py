from datetime import timedelta
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from typing import Dict, List, Optional
import logging

from compass_gps.dependencies.auth import cron_secret_required
from compass_gps.dependencies.services import get_compass_client, get_gps_freshness, get_gps_store
from compass_gps.exceptions import GPSLookupError
from compass_gps.models.modem_gps import gps_fix_out
from compass_gps.schemas.gps import BatchResponse, GPSFixOut, GPSQueryResponse
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.gps_lookup import lookup_modem_gps, parse_modem_ids
from compass_gps.utils.modem_gps import ModemGPSStore
from compass_gps.workers.gps_batch import GPSBatchJob

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gps", tags=["GPS"])


@router.get("/batch", response_model=BatchResponse, response_model_exclude_none=True)
def run_gps_batch(
    _: bool = Depends(cron_secret_required),
    client: CompassClient = Depends(get_compass_client),
    store: ModemGPSStore = Depends(get_gps_store),
):
    """Cron entry point: refresh the stored fix of every modem in the roster."""
    job = GPSBatchJob(client, store)
    job.authorize()
    summary = job.run()
    if not summary.success:
        return JSONResponse(
            status_code=job.status_code,
            content=summary.model_dump(exclude_none=True),
        )
    logger.info(f"✅ GPS batch finished: {summary.updated} modem(s) updated")
    return summary


@router.get("/query", response_model=GPSQueryResponse)
def query_gps(
    modemIds: Optional[str] = Query(None),
    store: ModemGPSStore = Depends(get_gps_store),
):
    """Stored fixes only; never calls the upstream."""
    modem_ids = parse_modem_ids(modemIds)
    if not modem_ids:
        return JSONResponse(status_code=400, content={"error": "No modem IDs provided"})

    logger.info(f"🔍 Querying GPS data for modems: {modem_ids}")
    try:
        records = store.find_latest_many(modem_ids)
    except PyMongoError as e:
        logger.error(f"🚨 Error querying GPS data: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch GPS data"})

    data: Dict[str, List[dict]] = {}
    for record in records:
        data.setdefault(record["modem_id"], []).append(gps_fix_out(record))
    return {"data": data}


@router.get("/{provider}/{modem_ids}", response_model=Dict[str, List[GPSFixOut]])
def get_modem_gps(
    provider: str,
    modem_ids: str,
    client: CompassClient = Depends(get_compass_client),
    store: ModemGPSStore = Depends(get_gps_store),
    freshness: timedelta = Depends(get_gps_freshness),
):
    """Latest fix per modem; accepts a comma-separated list of modem IDs."""
    try:
        return lookup_modem_gps(provider, parse_modem_ids(modem_ids), client, store, freshness=freshness)
    except GPSLookupError as e:
        content = {"error": str(e)}
        headers = None
        if e.retry_after is not None:
            content["retryAfter"] = e.retry_after
            content["message"] = "Please try again later"
            headers = {"Retry-After": str(e.retry_after)}
        return JSONResponse(status_code=e.status_code, content=content, headers=headers)
