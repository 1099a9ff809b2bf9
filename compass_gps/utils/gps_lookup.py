from datetime import datetime, timedelta, timezone
from pymongo.errors import PyMongoError
from typing import Any, Callable, Dict, List
import logging

from compass_gps.exceptions import (
    CompassError,
    CompassRateLimitError,
    ConfigurationError,
    GPSLookupError,
    LocalRateLimitError,
)
from compass_gps.models.modem_gps import gps_fix_out
from compass_gps.schemas.gps import Provider
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.gps_fixes import latest_fixes_by_modem
from compass_gps.utils.modem_gps import ModemGPSStore

logger = logging.getLogger(__name__)

GPS_FRESHNESS = timedelta(minutes=15)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_modem_ids(raw) -> List[str]:
    """Split a comma-separated id list, dropping blanks and duplicates while keeping order."""
    if not raw:
        return []
    ids = []
    for part in str(raw).split(","):
        modem_id = part.strip()
        if modem_id and modem_id not in ids:
            ids.append(modem_id)
    return ids


def lookup_modem_gps(
    provider: str,
    modem_ids: List[str],
    client: CompassClient,
    store: ModemGPSStore,
    freshness: timedelta = GPS_FRESHNESS,
    clock: Callable[[], datetime] = _utcnow,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Latest GPS fix per modem for an interactive page.

    Stored fixes newer than ``freshness`` are served without touching the
    upstream. The rest are fetched in a single call and persisted. When the
    upstream fails, whatever was already assembled (including stale stored
    fixes) is returned instead of an error.
    """
    resolved = Provider.from_name(provider)
    if resolved is None:
        raise GPSLookupError("Invalid provider", status_code=400)
    if not modem_ids:
        raise GPSLookupError("No modem IDs provided", status_code=400)
    provider_name = resolved.value

    fresh_after = clock() - freshness
    result: Dict[str, List[Dict[str, Any]]] = {}
    stale: Dict[str, List[Dict[str, Any]]] = {}
    to_refresh = []

    for modem_id in modem_ids:
        try:
            record = store.get_latest(modem_id, provider_name)
        except PyMongoError as e:
            logger.error(f"🚨 Stored GPS lookup failed for {provider_name}/{modem_id}: {e}")
            record = None

        if record and record["timestamp"] > fresh_after:
            logger.info(f"📦 Using database cached GPS data for {modem_id}")
            result[modem_id] = [gps_fix_out(record)]
            continue
        if record:
            stale[modem_id] = [gps_fix_out(record)]
        to_refresh.append(modem_id)

    if not to_refresh:
        return result

    try:
        access_token = client.get_access_token()
        payload = client.fetch_gps(provider_name, to_refresh, access_token)
    except ConfigurationError as e:
        logger.error(f"🔴 {e}")
        raise GPSLookupError("Server configuration error", status_code=500) from e
    except (CompassRateLimitError, LocalRateLimitError) as e:
        logger.warning(f"⏳ GPS rate limited for {provider_name}: {e}")
        fallback = {**stale, **result}
        if fallback:
            logger.info("📦 Returning cached data while rate limited")
            return fallback
        raise GPSLookupError("Rate limit exceeded", status_code=429, retry_after=e.retry_after) from e
    except CompassError as e:
        logger.error(f"🌍 Error fetching GPS data: {e}")
        fallback = {**stale, **result}
        if fallback:
            return fallback
        raise GPSLookupError("Network Error", status_code=500) from e

    for modem_id, fix in latest_fixes_by_modem(payload or {}, to_refresh).items():
        try:
            applied = store.upsert(modem_id, provider_name, fix.latitude, fix.longitude, fix.timestamp)
        except PyMongoError as e:
            logger.error(f"🚨 Failed to persist GPS fix for {provider_name}/{modem_id}: {e}")
            applied = True
        if not applied and modem_id in stale:
            # upstream answered with a fix older than the stored one
            result[modem_id] = stale[modem_id]
            continue
        result[modem_id] = [gps_fix_out(fix.model_dump())]

    for modem_id in to_refresh:
        if modem_id not in result and modem_id in stale:
            # upstream had no usable fix; keep the stored one
            result[modem_id] = stale[modem_id]

    return result
