from datetime import datetime, timezone
from typing import Any, Dict


def as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage_datetime(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def modem_gps_entity(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["_id"]),
        "modem_id": doc["modem_id"],
        "provider": doc["provider"],
        "latitude": float(doc["latitude"]),
        "longitude": float(doc["longitude"]),
        "timestamp": as_utc(doc["timestamp"]),
        "updated_at": as_utc(doc["updated_at"]) if doc.get("updated_at") else None,
    }


def gps_fix_out(record: Dict[str, Any]) -> Dict[str, Any]:
    """Wire format shared by the GPS endpoints: string lat/lon, epoch-second timestamp."""
    return {
        "lat": str(record["latitude"]),
        "lon": str(record["longitude"]),
        "timestamp": int(as_utc(record["timestamp"]).timestamp()),
    }
