from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pymongo.errors import ServerSelectionTimeoutError

from compass_gps.utils.cache import TTLCache


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class _BrokenCollection:
    def find_one(self, *_args, **_kwargs):
        raise ServerSelectionTimeoutError("no servers")

    def update_one(self, *_args, **_kwargs):
        raise ServerSelectionTimeoutError("no servers")

    def delete_many(self, *_args, **_kwargs):
        raise ServerSelectionTimeoutError("no servers")


def test_set_then_get_within_ttl(mongo_db) -> None:
    clock = _Clock()
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5), clock=clock)

    assert cache.set("modem-starlink-m1", {"status": "online", "series": [[1, 2.5]]})
    clock.now += timedelta(minutes=4)

    assert cache.get("modem-starlink-m1") == {"status": "online", "series": [[1, 2.5]]}


def test_get_misses_on_absent_and_expired_entries(mongo_db) -> None:
    clock = _Clock()
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5), clock=clock)

    assert cache.get("missing") is None

    cache.set("key", [1, 2, 3])
    clock.now += timedelta(minutes=6)
    assert cache.get("key") is None
    # expired entries are only removed by the sweep
    assert mongo_db["api_cache"].count_documents({}) == 1


def test_set_overwrites_value_and_refreshes_timestamp(mongo_db) -> None:
    clock = _Clock()
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5), clock=clock)

    cache.set("key", "old")
    clock.now += timedelta(minutes=4)
    cache.set("key", "new")
    clock.now += timedelta(minutes=4)

    assert cache.get("key") == "new"
    assert mongo_db["api_cache"].count_documents({}) == 1


def test_get_or_fetch_calls_fetch_only_on_miss(mongo_db) -> None:
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5))
    calls = []

    def fetch():
        calls.append(1)
        return {"services": ["a"]}

    assert cache.get_or_fetch("services", fetch) == {"services": ["a"]}
    assert cache.get_or_fetch("services", fetch) == {"services": ["a"]}
    assert len(calls) == 1


def test_sweep_deletes_only_expired_entries(mongo_db) -> None:
    clock = _Clock()
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5), clock=clock)

    cache.set("old", 1)
    clock.now += timedelta(minutes=10)
    cache.set("fresh", 2)

    assert cache.sweep() == 1
    assert cache.get("fresh") == 2
    assert mongo_db["api_cache"].find_one({"_id": "old"}) is None


def test_store_failures_behave_like_a_miss() -> None:
    cache = TTLCache(_BrokenCollection(), ttl=timedelta(minutes=5))
    calls = []

    def fetch():
        calls.append(1)
        return "value"

    assert cache.get("key") is None
    assert cache.set("key", "value") is False
    assert cache.get_or_fetch("key", fetch) == "value"
    assert cache.sweep() == 0
    assert calls == [1]


def test_unserializable_value_is_not_stored(mongo_db) -> None:
    cache = TTLCache(mongo_db["api_cache"], ttl=timedelta(minutes=5))
    circular: dict = {}
    circular["self"] = circular

    assert cache.set("key", circular) is False
    assert cache.get("key") is None
