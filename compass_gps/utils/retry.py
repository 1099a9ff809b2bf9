from pymongo.errors import ConnectionFailure
from typing import Callable, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3


def is_transient_db_error(error: BaseException) -> bool:
    """Connection-level failures (dropped socket, failover, server selection) are worth a reconnect."""
    return isinstance(error, ConnectionFailure)


def with_retry(
    operation: Callable[[], T],
    is_transient: Callable[[BaseException], bool] = is_transient_db_error,
    reconnect: Optional[Callable[[], None]] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> T:
    """
    Run ``operation``; on a transient error reconnect and try again.

    Non-transient errors propagate immediately. After ``max_retries`` attempts
    the last transient error propagates.
    """
    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except Exception as e:
            if not is_transient(e):
                raise
            logger.error(f"📡 Attempt {attempt}/{max_retries} failed: {e}")
            if attempt == max_retries:
                logger.error("❌ Max retries reached")
                raise
            if reconnect is not None:
                logger.info(f"🔄 Reconnecting (attempt {attempt}/{max_retries})...")
                reconnect()
    raise ValueError("max_retries must be at least 1")
