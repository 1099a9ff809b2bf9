from datetime import timedelta
from compass_gps.config import get_settings
from compass_gps.database import get_api_cache_collection, get_modem_gps_collection, reconnect_database
from compass_gps.utils.cache import TTLCache
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.modem_gps import ModemGPSStore
from compass_gps.utils.rate_limiter import RateLimiter

settings = get_settings()

# One client per process so every request shares the same rate-limit window
compass_client = CompassClient(
    base_url=settings.compass_api_url,
    username=settings.compass_api_username,
    password=settings.compass_api_password,
    company_id=settings.compass_company_id,
    rate_limiter=RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window=settings.rate_limit_window_seconds,
    ),
    timeout=settings.compass_timeout_seconds,
)

# Collections are resolved per call so both follow reconnect_database()
gps_store = ModemGPSStore(get_collection=get_modem_gps_collection, reconnect=reconnect_database)

api_cache = TTLCache(
    get_collection=get_api_cache_collection,
    ttl=timedelta(minutes=settings.api_cache_ttl_minutes),
)


def get_compass_client() -> CompassClient:
    return compass_client


def get_gps_store() -> ModemGPSStore:
    return gps_store


def get_api_cache() -> TTLCache:
    return api_cache


def get_gps_freshness() -> timedelta:
    return timedelta(minutes=settings.gps_cache_ttl_minutes)
