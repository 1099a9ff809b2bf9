from __future__ import annotations

from datetime import timedelta
from typing import Any

import mongomock
import pytest
import requests

from compass_gps.utils.cache import TTLCache
from compass_gps.utils.compass_client import CompassClient
from compass_gps.utils.modem_gps import ModemGPSStore
from compass_gps.utils.rate_limiter import RateLimiter

BASE_URL = "https://compass.test/v2.0"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: dict | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Stands in for requests.Session; answers from per-URL queues and records every call."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[dict[str, Any]] = []

    def add(self, method: str, url: str, *responses: Any) -> None:
        self.routes.setdefault((method, url), []).extend(responses)

    def _respond(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        queue = self.routes.get((method, url))
        if not queue:
            raise AssertionError(f"Unexpected {method} {url}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._respond("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._respond("GET", url, **kwargs)

    def calls_to(self, url: str) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["url"] == url]


@pytest.fixture
def session() -> FakeSession:
    fake = FakeSession()
    fake.add("POST", f"{BASE_URL}/auth", FakeResponse(200, {"access_token": "token-1"}))
    return fake


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client(session: FakeSession, sleeps: list[float]) -> CompassClient:
    return CompassClient(
        base_url=BASE_URL,
        username="user@example.com",
        password="secret",
        company_id="company-1",
        rate_limiter=RateLimiter(max_requests=100, window=60),
        session=session,
        sleep=sleeps.append,
    )


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient().db


@pytest.fixture
def store(mongo_db) -> ModemGPSStore:
    gps_store = ModemGPSStore(mongo_db["modem_gps"])
    gps_store.ensure_indexes()
    return gps_store


@pytest.fixture
def api_cache(mongo_db) -> TTLCache:
    return TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5))
