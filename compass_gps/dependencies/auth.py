from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
from compass_gps.config import get_settings
import logging
import secrets

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def cron_secret_required(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    """
    Guard for scheduler-triggered endpoints.

    The request must carry ``Authorization: Bearer <CRON_SECRET>``. A missing
    CRON_SECRET is a server misconfiguration and fails with 500 before the
    token is even looked at.
    """
    cron_secret = get_settings().cron_secret
    if not cron_secret:
        logger.error("🔴 CRON_SECRET environment variable is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    token = credentials.credentials if credentials else ""
    if not secrets.compare_digest(token.encode(), cron_secret.encode()):
        logger.warning("🚫 Unauthorized cron job attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return True
