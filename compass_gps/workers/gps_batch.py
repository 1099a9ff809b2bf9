from enum import Enum
from pymongo.errors import PyMongoError
from typing import Dict, List, Optional
import logging

from compass_gps.exceptions import CompassGPSError, CompassRateLimitError, LocalRateLimitError
from compass_gps.schemas.gps import BatchOutcome, BatchResponse, BatchResult, ModemRef
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.gps_fixes import latest_fixes_by_modem
from compass_gps.utils.modem_gps import ModemGPSStore

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    idle = "idle"
    authorizing = "authorizing"
    listing_modems = "listing_modems"
    per_provider_fetch = "per_provider_fetch"
    reconciling = "reconciling"
    done = "done"
    error = "error"


def group_by_provider(modems: List[ModemRef]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for modem in modems:
        ids = grouped.setdefault(modem.provider, [])
        if modem.id not in ids:
            ids.append(modem.id)
    return grouped


class GPSBatchJob:
    """
    Refresh the stored GPS fix of every modem in the company roster.

    Each provider group is fetched and reconciled on its own; a failing group
    is reported in the results and the remaining groups still run. Only a
    failure to list the roster makes the whole batch unsuccessful.

    The caller is expected to have verified the cron secret already
    (``authorize`` records that step).
    """

    def __init__(self, client: CompassClient, store: ModemGPSStore):
        self.client = client
        self.store = store
        self.state = BatchState.idle
        self.status_code = 200
        self.results: List[BatchResult] = []

    def _transition(self, state: BatchState):
        logger.info(f"🛰️ GPS batch: {self.state.value} -> {state.value}")
        self.state = state

    def authorize(self):
        self._transition(BatchState.authorizing)

    def _fail(self, status_code: int, message: str) -> BatchResponse:
        self._transition(BatchState.error)
        self.status_code = status_code
        return BatchResponse(success=False, error=message)

    def run(self) -> BatchResponse:
        if self.state == BatchState.idle:
            self.authorize()

        self._transition(BatchState.listing_modems)
        try:
            modems = self.client.list_modems()
        except CompassGPSError as e:
            logger.error(f"🚨 Batch GPS update failed while listing modems: {e}")
            return self._fail(500, str(e))

        logger.info(f"🔢 Total valid modems found: {len(modems)}")
        if not modems:
            logger.warning("⚠️ No valid modems found after processing services")
            return self._fail(404, "No valid modems found")

        for provider, modem_ids in group_by_provider(modems).items():
            self._transition(BatchState.per_provider_fetch)
            payload = self._fetch_provider(provider, modem_ids)
            if payload is None:
                continue
            self._transition(BatchState.reconciling)
            self._reconcile(provider, modem_ids, payload)

        self._transition(BatchState.done)
        updated = len([r for r in self.results if r.status == BatchOutcome.success])
        return BatchResponse(success=True, updated=updated, results=self.results)

    def _fetch_provider(self, provider: str, modem_ids: List[str]) -> Optional[dict]:
        if self.client.get_gps_url(provider) is None:
            logger.warning(f"⚠️ No GPS URL for provider: {provider}")
            self.results.append(BatchResult(
                provider=provider,
                status=BatchOutcome.skipped,
                modemIds=modem_ids,
                message="No GPS endpoint for provider",
            ))
            return None

        try:
            access_token = self.client.get_access_token()
            return self.client.fetch_gps(provider, modem_ids, access_token)
        except (CompassRateLimitError, LocalRateLimitError) as e:
            logger.warning(f"⏳ GPS rate limited for {provider}: {e}")
            self.results.append(BatchResult(
                provider=provider,
                status=BatchOutcome.rate_limited,
                modemIds=modem_ids,
                message=str(e),
                retryAfter=e.retry_after,
            ))
        except CompassGPSError as e:
            logger.error(f"🚨 Error fetching GPS data for {provider}: {e}")
            self.results.append(BatchResult(
                provider=provider,
                status=BatchOutcome.error,
                modemIds=modem_ids,
                message=str(e),
            ))
        return None

    def _reconcile(self, provider: str, modem_ids: List[str], payload: dict):
        # ids the upstream returns outside this group are not written
        for modem_id, fix in latest_fixes_by_modem(payload, modem_ids).items():
            try:
                applied = self.store.upsert(modem_id, provider, fix.latitude, fix.longitude, fix.timestamp)
            except PyMongoError as e:
                logger.error(f"🚨 Failed to store GPS fix for {provider}/{modem_id}: {e}")
                self.results.append(BatchResult(
                    provider=provider, modemId=modem_id, status=BatchOutcome.error, message=str(e)))
                continue

            status = BatchOutcome.success if applied else BatchOutcome.stale
            self.results.append(BatchResult(provider=provider, modemId=modem_id, status=status))
