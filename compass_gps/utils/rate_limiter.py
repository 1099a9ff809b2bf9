import logging
import math
import threading
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window call counter for outbound Compass GPS requests.

    Process-local only: the window lives in memory and starts over when the
    process restarts. Several app instances would each get the full budget.
    """

    def __init__(self, max_requests: int = 30, window: float = 60, clock=time.monotonic):  # 30 requests per minute
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self.window_start = clock()
        self.count = 0

    def is_rate_limited(self) -> bool:
        """Count one attempted call and report whether it must be rejected."""
        with self._lock:
            now = self._clock()
            if now - self.window_start > self.window:
                logger.debug("⏲️ Rate limit window reset")
                self.window_start = now
                self.count = 0

            self.count += 1
            limited = self.count > self.max_requests

        if limited:
            logger.warning(
                f"🚫 Rate limit hit: {self.count} requests, {self.seconds_until_reset()}s left in window")
        else:
            logger.debug(f"📊 Request count: {self.count}/{self.max_requests}")
        return limited

    def seconds_until_reset(self) -> int:
        remaining = self.window - (self._clock() - self.window_start)
        return max(0, math.ceil(remaining))
