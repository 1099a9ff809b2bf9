"""Parsing and selection of GPS fix entries returned by the Compass GPS endpoints.

Upstream entries look like ``{"timestamp": 1718000000, "lat": "-33.86", "lon": "151.2"}``.
Entries that do not have that shape are skipped, never treated as errors.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import math

from compass_gps.schemas.gps import GPSFix

# Values above this are epoch milliseconds rather than seconds
_MILLISECONDS_THRESHOLD = 1e11


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_timestamp(value: Any) -> Optional[datetime]:
    """Accept epoch seconds, epoch milliseconds or ISO-8601 strings; return an aware UTC datetime."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    seconds = _to_float(value)
    if seconds is not None:
        if seconds <= 0:
            return None
        if seconds > _MILLISECONDS_THRESHOLD:
            seconds /= 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    return None


def parse_fix(entry: Any) -> Optional[GPSFix]:
    if not isinstance(entry, dict):
        return None

    timestamp = normalize_timestamp(entry.get("timestamp"))
    latitude = _to_float(entry.get("lat", entry.get("latitude")))
    longitude = _to_float(entry.get("lon", entry.get("longitude")))
    if timestamp is None or latitude is None or longitude is None:
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return GPSFix(latitude=latitude, longitude=longitude, timestamp=timestamp)


def valid_fixes(entries: Any) -> List[GPSFix]:
    if not isinstance(entries, list):
        return []
    fixes = [parse_fix(entry) for entry in entries]
    return [fix for fix in fixes if fix is not None]


def latest_fix(entries: Any) -> Optional[GPSFix]:
    """Most recent valid fix, regardless of the order upstream returned them in."""
    fixes = valid_fixes(entries)
    if not fixes:
        return None
    return max(fixes, key=lambda fix: fix.timestamp)


def latest_fixes_by_modem(payload: Dict[str, Any], modem_ids: Optional[Iterable[str]] = None) -> Dict[str, GPSFix]:
    """Reduce an upstream ``{modemId: [entries]}`` payload to the newest valid fix per modem."""
    wanted = set(modem_ids) if modem_ids is not None else None
    result = {}
    for modem_id, entries in payload.items():
        if wanted is not None and str(modem_id) not in wanted:
            continue
        fix = latest_fix(entries)
        if fix is not None:
            result[str(modem_id)] = fix
    return result
