from datetime import datetime, timedelta, timezone
from pymongo import ASCENDING
from pymongo.errors import PyMongoError
from typing import Any, Callable, Optional
import json
import logging

from compass_gps.models.modem_gps import as_utc, to_storage_datetime

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TTLCache:
    """
    String-keyed JSON cache stored one document per key.

    Expiry is enforced on read: ``get`` reports a miss for entries older than
    the TTL. Expired documents stay until ``sweep`` removes them. Storage
    failures are logged and behave like a miss.

    A ``get_collection`` factory may be passed instead of ``collection``; it
    is resolved on every call so a reopened client is used.
    """

    def __init__(
        self,
        collection=None,
        ttl: timedelta = timedelta(minutes=5),
        clock: Callable[[], datetime] = _utcnow,
        get_collection: Optional[Callable[[], Any]] = None,
    ):
        if collection is None and get_collection is None:
            raise ValueError("collection or get_collection is required")
        self._collection = collection
        self._get_collection = get_collection
        self.ttl = ttl
        self._clock = clock

    @property
    def collection(self):
        if self._get_collection is not None:
            return self._get_collection()
        return self._collection

    def ensure_indexes(self):
        self.collection.create_index([("updated_at", ASCENDING)], name="updated_at")

    def get(self, key: str) -> Optional[Any]:
        try:
            doc = self.collection.find_one({"_id": key})
        except PyMongoError as e:
            logger.error(f"🚨 Cache read error for {key}: {e}")
            return None

        if not doc or doc.get("updated_at") is None:
            return None
        if as_utc(doc["updated_at"]) < self._clock() - self.ttl:
            logger.debug(f"Cache entry expired: {key}")
            return None

        try:
            return json.loads(doc["value"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"🚨 Cache entry for {key} could not be decoded: {e}")
            return None

    def set(self, key: str, value: Any) -> bool:
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"🚨 Cache value for {key} is not serializable: {e}")
            return False

        try:
            self.collection.update_one(
                {"_id": key},
                {"$set": {"value": serialized, "updated_at": to_storage_datetime(self._clock())}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"🚨 Cache write error for {key}: {e}")
            return False
        return True

    def get_or_fetch(self, key: str, fetch: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            logger.info(f"📦 Cache hit: {key}")
            return cached

        value = fetch()
        self.set(key, value)
        return value

    def sweep(self) -> int:
        """Delete entries older than the TTL; returns how many were removed."""
        cutoff = to_storage_datetime(self._clock() - self.ttl)
        try:
            result = self.collection.delete_many({"updated_at": {"$lt": cutoff}})
        except PyMongoError as e:
            logger.error(f"🚨 Cache sweep failed: {e}")
            return 0
        logger.info(f"🧹 Cache sweep removed {result.deleted_count} entries")
        return result.deleted_count
