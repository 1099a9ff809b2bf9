from dotenv import load_dotenv
from pydantic import BaseModel
from typing import List, Optional
import os

from compass_gps.exceptions import ConfigurationError

load_dotenv()

DEFAULT_COMPASS_API_URL = "https://api-compass.speedcast.com/v2.0"


class Settings(BaseModel):
    compass_api_url: str = DEFAULT_COMPASS_API_URL
    compass_api_username: Optional[str] = None
    compass_api_password: Optional[str] = None
    compass_company_id: Optional[str] = None
    compass_timeout_seconds: float = 10.0
    cron_secret: Optional[str] = None
    google_maps_api_key: Optional[str] = None
    mongo_uri: Optional[str] = None
    mongo_db_name: str = "compass_gps"
    gps_cache_ttl_minutes: int = 15
    api_cache_ttl_minutes: int = 5
    rate_limit_max_requests: int = 30
    rate_limit_window_seconds: int = 60
    cors_origins: List[str] = ["http://localhost:5173"]


def _env(name: str, default=None):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


_UNSET = object()


def require(name: str, value=_UNSET) -> str:
    """
    Return a required setting or raise ConfigurationError naming it.

    Reads the environment variable ``name`` unless an already-resolved
    ``value`` is passed in.
    """
    if value is _UNSET:
        value = _env(name)
    if value is None or str(value).strip() == "":
        raise ConfigurationError(f"{name} must be set")
    return value


def get_settings() -> Settings:
    """Read the environment into a Settings object (re-read on every call)."""
    origins = _env("CORS_ORIGINS")
    return Settings(
        compass_api_url=_env("COMPASS_API_URL", DEFAULT_COMPASS_API_URL),
        compass_api_username=_env("COMPASS_API_USERNAME"),
        compass_api_password=_env("COMPASS_API_PASSWORD"),
        compass_company_id=_env("COMPASS_COMPANY_ID"),
        compass_timeout_seconds=_env("COMPASS_TIMEOUT_SECONDS", 10.0),
        cron_secret=_env("CRON_SECRET"),
        google_maps_api_key=_env("GOOGLE_MAPS_API_KEY"),
        mongo_uri=_env("MONGO_URI"),
        mongo_db_name=_env("MONGO_DB_NAME", "compass_gps"),
        gps_cache_ttl_minutes=_env("GPS_CACHE_TTL_MINUTES", 15),
        api_cache_ttl_minutes=_env("API_CACHE_TTL_MINUTES", 5),
        rate_limit_max_requests=_env("RATE_LIMIT_MAX_REQUESTS", 30),
        rate_limit_window_seconds=_env("RATE_LIMIT_WINDOW_SECONDS", 60),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else ["http://localhost:5173"],
    )
