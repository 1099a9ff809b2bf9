from fastapi import APIRouter, Depends

from compass_gps.dependencies.auth import cron_secret_required
from compass_gps.dependencies.services import get_api_cache
from compass_gps.schemas.modem import CacheSweepResponse
from compass_gps.utils.cache import TTLCache

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.post("/sweep", response_model=CacheSweepResponse)
def sweep_cache(
    _: bool = Depends(cron_secret_required),
    cache: TTLCache = Depends(get_api_cache),
):
    """Maintenance task: delete API cache entries older than the TTL."""
    return {"deleted": cache.sweep()}
