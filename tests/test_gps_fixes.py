from __future__ import annotations

from datetime import datetime, timezone

import pytest

from compass_gps.utils.gps_fixes import latest_fix, latest_fixes_by_modem, normalize_timestamp, parse_fix


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [1718000000, "1718000000", 1718000000000, "2024-06-10T06:13:20Z", "2024-06-10T06:13:20+00:00"],
)
def test_normalize_timestamp_formats(value) -> None:
    assert normalize_timestamp(value) == _utc(2024, 6, 10, 6, 13, 20)


@pytest.mark.parametrize("value", [None, "", 0, -5, "yesterday", True, {"ts": 1}])
def test_normalize_timestamp_rejects_garbage(value) -> None:
    assert normalize_timestamp(value) is None


def test_parse_fix_accepts_numeric_strings() -> None:
    fix = parse_fix({"timestamp": 1718000000, "lat": "-33.8688", "lon": "151.2093"})

    assert fix is not None
    assert fix.latitude == pytest.approx(-33.8688)
    assert fix.longitude == pytest.approx(151.2093)


@pytest.mark.parametrize(
    "entry",
    [
        None,
        "1,2",
        {"lat": "1", "lon": "2"},
        {"timestamp": 1718000000, "lon": "2"},
        {"timestamp": 1718000000, "lat": "north", "lon": "2"},
        {"timestamp": 1718000000, "lat": "95", "lon": "2"},
        {"timestamp": 1718000000, "lat": "1", "lon": "nan"},
    ],
)
def test_parse_fix_skips_malformed_entries(entry) -> None:
    assert parse_fix(entry) is None


def test_latest_fix_picks_newest_regardless_of_order() -> None:
    entries = [
        {"timestamp": 1718000000, "lat": "1", "lon": "1"},
        {"timestamp": 1718000600, "lat": "3", "lon": "3"},
        {"timestamp": None, "lat": "9", "lon": "9"},
        {"timestamp": 1718000300, "lat": "2", "lon": "2"},
    ]

    fix = latest_fix(entries)
    assert fix is not None
    assert fix.latitude == 3.0


def test_latest_fixes_by_modem_drops_modems_without_valid_fixes() -> None:
    payload = {
        "m1": [{"timestamp": 1718000000, "lat": "1", "lon": "1"}],
        "m2": [],
        "m3": [{"lat": "1", "lon": "1"}],
        "m4": "not-a-list",
    }

    assert set(latest_fixes_by_modem(payload)) == {"m1"}
    assert latest_fixes_by_modem(payload, ["m2"]) == {}
