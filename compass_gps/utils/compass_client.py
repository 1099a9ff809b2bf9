from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import logging
import math
import time

import requests

from compass_gps.config import DEFAULT_COMPASS_API_URL, require
from compass_gps.exceptions import (
    CompassApiError,
    CompassAuthError,
    CompassNotFoundError,
    CompassRateLimitError,
    LocalRateLimitError,
)
from compass_gps.schemas.gps import ModemRef, Provider
from compass_gps.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60
MAX_GPS_ATTEMPTS = 3


def get_gps_url(provider, base_url: str = DEFAULT_COMPASS_API_URL) -> Optional[str]:
    """GPS endpoint for a provider name, or None when the provider has no GPS endpoint."""
    resolved = Provider.from_name(provider)
    if resolved is None:
        return None
    return f"{base_url.rstrip('/')}/{resolved.gps_path}"


def parse_retry_after(value: Optional[str], default: int = DEFAULT_RETRY_AFTER_SECONDS) -> int:
    """Retry-After as whole seconds; accepts delta-seconds or an HTTP-date."""
    if value is None or not str(value).strip():
        return default
    text = str(value).strip()
    try:
        return max(0, math.ceil(float(text)))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return default
    if retry_at is None:
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, math.ceil((retry_at - datetime.now(timezone.utc)).total_seconds()))


class CompassClient:
    """
    Thin client for the Compass API.

    Owns the RateLimiter that guards the GPS endpoints, so every GPS POST made
    through one client instance shares a single window.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_COMPASS_API_URL,
        username: Optional[str] = None,
        password: Optional[str] = None,
        company_id: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        sleep=time.sleep,
        max_attempts: int = MAX_GPS_ATTEMPTS,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.company_id = company_id
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self.session = session or requests.Session()
        self._sleep = sleep
        self.max_attempts = max_attempts

    def _auth_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def get_gps_url(self, provider) -> Optional[str]:
        return get_gps_url(provider, self.base_url)

    def get_access_token(self) -> str:
        username = require("COMPASS_API_USERNAME", self.username)
        password = require("COMPASS_API_PASSWORD", self.password)

        try:
            response = self.session.post(
                f"{self.base_url}/auth",
                json={"username": username, "password": password},
                timeout=self.timeout,
            )
            response.raise_for_status()
            access_token = response.json().get("access_token")
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.error(f"Error retrieving access token: {e}")
            raise CompassAuthError("Error retrieving access token") from e

        if not access_token:
            raise CompassAuthError("Access token missing from auth response")
        return access_token

    def _get_json(self, url: str, access_token: str) -> Any:
        try:
            response = self.session.get(url, headers=self._auth_headers(access_token), timeout=self.timeout)
        except requests.RequestException as e:
            raise CompassApiError(f"Network error calling {url}: {e}") from e

        if response.status_code == 404:
            raise CompassNotFoundError(f"Not found: {url}")
        if not response.ok:
            raise CompassApiError(f"HTTP code {response.status_code} from {url}", status_code=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise CompassApiError(f"Invalid JSON from {url}", status_code=response.status_code) from e

    def list_services(self, access_token: Optional[str] = None) -> List[Dict[str, Any]]:
        """Company service catalog; each service carries its modems (id + type)."""
        company_id = require("COMPASS_COMPANY_ID", self.company_id)
        token = access_token or self.get_access_token()

        logger.info("🌽 Fetching services and modem data...")
        services = self._get_json(f"{self.base_url}/company/{quote(str(company_id))}", token)
        if not isinstance(services, list):
            raise CompassApiError("Invalid services data received")
        logger.info(f"🌽 {len(services)} services fetched")
        return services

    def list_modems(self, services: Optional[List[Dict[str, Any]]] = None) -> List[ModemRef]:
        if services is None:
            services = self.list_services()

        modems = []
        for service in services:
            service_modems = service.get("modems") if isinstance(service, dict) else None
            if not isinstance(service_modems, list):
                name = service.get("name") if isinstance(service, dict) else service
                logger.warning(f"⚠️ Invalid modems array for service: {name}")
                continue
            for modem in service_modems:
                if not isinstance(modem, dict) or not modem.get("id") or not modem.get("type"):
                    logger.warning(f"⚠️ Modem missing ID or type: {modem}")
                    continue
                modems.append(ModemRef(id=str(modem["id"]), provider=str(modem["type"]).lower()))
        return modems

    def get_modem_details(self, provider: str, modem_id: str, access_token: Optional[str] = None) -> Any:
        token = access_token or self.get_access_token()
        url = f"{self.base_url}/{quote(provider.lower())}/{quote(str(modem_id))}"
        return self._get_json(url, token)

    def fetch_gps(self, provider, modem_ids: List[str], access_token: str) -> Optional[Dict[str, Any]]:
        """
        POST ``{"ids": modem_ids}`` to the provider's GPS endpoint.

        Returns None when the provider has no GPS endpoint. HTTP 429 is retried
        after the server's Retry-After, up to ``max_attempts`` calls in total.
        Every other failure propagates without a retry.
        """
        if not modem_ids:
            raise ValueError("modem_ids must not be empty")

        url = self.get_gps_url(provider)
        if url is None:
            return None

        for attempt in range(1, self.max_attempts + 1):
            if self.rate_limiter.is_rate_limited():
                raise LocalRateLimitError(
                    "Local GPS rate limit exceeded", retry_after=self.rate_limiter.seconds_until_reset())

            logger.info(f"🔍 Fetching GPS data for {len(modem_ids)} {provider} modem(s) (attempt {attempt})")
            try:
                response = self.session.post(
                    url,
                    json={"ids": list(modem_ids)},
                    headers=self._auth_headers(access_token),
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.error(f"🔴 Network Error: {e}")
                raise CompassApiError(f"Network Error: {e}") from e

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                if attempt == self.max_attempts:
                    raise CompassRateLimitError("Rate limit exceeded", retry_after=retry_after)
                logger.info(f"⌛ Rate limited, waiting {retry_after}s before retry...")
                self._sleep(retry_after)
                continue

            if not response.ok:
                raise CompassApiError(f"HTTP code {response.status_code}", status_code=response.status_code)

            try:
                payload = response.json()
            except ValueError as e:
                raise CompassApiError("Invalid JSON in GPS response", status_code=response.status_code) from e
            if not isinstance(payload, dict):
                raise CompassApiError("Unexpected GPS payload", status_code=response.status_code)
            return payload

        raise CompassRateLimitError("Rate limit exceeded", retry_after=DEFAULT_RETRY_AFTER_SECONDS)
