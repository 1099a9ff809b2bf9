from typing import Any, Dict, List, Optional
import time

from compass_gps.schemas.modem import ModemStatus

# A metric with a data point inside this window counts as recent
ONLINE_WINDOW_SECONDS = 3600

SERIES_FIELDS = {
    "latencyData": ("data", "latency", "data"),
    "throughputData": ("data", "throughput", "data"),
    "signalQualityData": ("data", "signal", "data"),
    "obstructionData": ("data", "obstruction", "data"),
    "uptimeData": ("data", "uptime", "data"),
}


def _dig(source: Any, path) -> Any:
    for key in path:
        if not isinstance(source, dict):
            return None
        source = source.get(key)
    return source


def _series(modem: Any, path) -> List[Any]:
    value = _dig(modem, path)
    return value if isinstance(value, list) else []


def has_recent_data(series: List[Any], now: Optional[float] = None) -> bool:
    """Series points are ``[epoch_seconds, value]``; only the last point is checked."""
    if not series:
        return False
    last = series[-1]
    if not isinstance(last, (list, tuple)) or not last:
        return False
    try:
        last_timestamp = float(last[0])
    except (TypeError, ValueError):
        return False
    now = time.time() if now is None else now
    return now - last_timestamp < ONLINE_WINDOW_SECONDS


def determine_modem_status(modem: Any, now: Optional[float] = None) -> ModemStatus:
    for field in ("latencyData", "throughputData", "signalQualityData"):
        if has_recent_data(_series(modem, SERIES_FIELDS[field]), now):
            return ModemStatus.online
    return ModemStatus.offline


def build_modem_view(modem: Any, now: Optional[float] = None) -> Dict[str, Any]:
    """Shape an upstream modem document into the series the dashboard charts."""
    if not isinstance(modem, dict) or not modem.get("data"):
        view = {field: [] for field in SERIES_FIELDS}
        view.update({
            "status": ModemStatus.offline.value,
            "error": "No modem data available",
            "modem": None,
            "usageData": [],
        })
        return view

    view = {field: _series(modem, path) for field, path in SERIES_FIELDS.items()}
    usage = modem.get("usage")
    view["usageData"] = usage if isinstance(usage, list) else []
    view["status"] = determine_modem_status(modem, now).value
    view["modem"] = modem
    return view
