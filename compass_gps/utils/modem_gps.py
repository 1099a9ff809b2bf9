from datetime import datetime, timezone
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError
from typing import Any, Callable, Dict, List, Optional
import logging

from compass_gps.models.modem_gps import modem_gps_entity, to_storage_datetime
from compass_gps.utils.retry import DEFAULT_MAX_RETRIES, is_transient_db_error, with_retry

logger = logging.getLogger(__name__)


class ModemGPSStore:
    """
    Latest known position per (modem_id, provider).

    Pass either a ``collection`` or a ``get_collection`` factory. The factory
    is resolved on every operation, so a reconnect that replaces the client
    is picked up by the retried operation.
    """

    def __init__(
        self,
        collection=None,
        reconnect: Optional[Callable[[], None]] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        is_transient: Callable[[BaseException], bool] = is_transient_db_error,
        get_collection: Optional[Callable[[], Any]] = None,
    ):
        if collection is None and get_collection is None:
            raise ValueError("collection or get_collection is required")
        self._collection = collection
        self._get_collection = get_collection
        self._reconnect = reconnect
        self._max_retries = max_retries
        self._is_transient = is_transient
        self._indexes_ready = False

    @property
    def collection(self):
        if self._get_collection is not None:
            return self._get_collection()
        return self._collection

    def _run(self, operation):
        return with_retry(
            operation,
            is_transient=self._is_transient,
            reconnect=self._reconnect,
            max_retries=self._max_retries,
        )

    def ensure_indexes(self):
        self._run(lambda: self.collection.create_index(
            [("modem_id", ASCENDING), ("provider", ASCENDING)],
            unique=True,
            name="modem_id_provider_unique",
        ))
        self._indexes_ready = True

    def upsert(self, modem_id: str, provider: str, latitude: float, longitude: float, timestamp: datetime) -> bool:
        """
        Insert or overwrite the record for (modem_id, provider).

        The write only applies when ``timestamp`` is not older than the stored
        fix. An older fix fails to match the filter, the upsert then collides
        with the unique index and the call returns False. The index is created
        before the first write if ``ensure_indexes`` has not run yet.
        """
        if not self._indexes_ready:
            self.ensure_indexes()

        fix_time = to_storage_datetime(timestamp)
        now = to_storage_datetime(datetime.now(timezone.utc))

        def _upsert():
            try:
                self.collection.update_one(
                    {"modem_id": modem_id, "provider": provider, "timestamp": {"$lte": fix_time}},
                    {
                        "$set": {
                            "latitude": float(latitude),
                            "longitude": float(longitude),
                            "timestamp": fix_time,
                            "updated_at": now,
                        },
                    },
                    upsert=True,
                )
            except DuplicateKeyError:
                logger.info(f"⏭️ Ignoring older GPS fix for {provider}/{modem_id} ({fix_time.isoformat()})")
                return False
            return True

        return self._run(_upsert)

    def get_latest(self, modem_id: str, provider: str) -> Optional[Dict[str, Any]]:
        doc = self._run(lambda: self.collection.find_one({"modem_id": modem_id, "provider": provider}))
        return modem_gps_entity(doc) if doc else None

    def find_latest_many(self, modem_ids: List[str]) -> List[Dict[str, Any]]:
        """Records for any provider of the given modems, newest fix first."""
        docs = self._run(lambda: list(
            self.collection.find({"modem_id": {"$in": list(modem_ids)}}).sort("timestamp", DESCENDING)
        ))
        return [modem_gps_entity(doc) for doc in docs]
