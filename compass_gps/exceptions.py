"""Exception hierarchy for the Compass GPS backend."""

from typing import Optional


class CompassGPSError(Exception):
    """Base exception for the service."""


class ConfigurationError(CompassGPSError):
    """A required environment variable or setting is missing."""


class CompassError(CompassGPSError):
    """Base exception for upstream Compass API failures."""


class CompassApiError(CompassError):
    """Upstream returned a non-2xx status, an unusable payload, or the call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CompassAuthError(CompassError):
    """Access token could not be obtained."""


class CompassNotFoundError(CompassApiError):
    """Upstream resource does not exist (HTTP 404)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class CompassRateLimitError(CompassError):
    """Upstream kept answering HTTP 429 after all retry attempts."""

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class LocalRateLimitError(CompassError):
    """The in-process rate limiter rejected the call before it was sent."""

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class GPSLookupError(CompassGPSError):
    """Interactive GPS lookup failed with no data to fall back on."""

    def __init__(self, message: str, status_code: int = 500, retry_after: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
