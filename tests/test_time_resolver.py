import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from skycheck.domain import InvalidInputError
from skycheck.time_resolver import (
    format_local_date,
    format_local_label,
    local_day_instants,
    local_day_window,
    resolve_target,
)

UTC = dt.timezone.utc


def test_naive_target_is_wall_clock_in_zone():
    resolved = resolve_target("2026-10-20T14:00", "America/Mazatlan")
    assert resolved.instant == dt.datetime(2026, 10, 20, 21, 0, tzinfo=UTC)
    assert resolved.window.local_date == dt.date(2026, 10, 20)
    assert resolved.window.start == dt.datetime(2026, 10, 20, 7, 0, tzinfo=UTC)
    assert resolved.window.end == dt.datetime(2026, 10, 21, 6, 59, 59, 999000, tzinfo=UTC)


def test_offset_target_is_absolute_and_zone_only_picks_the_day():
    resolved = resolve_target("2026-10-20T14:00:00Z", "Asia/Tokyo")
    assert resolved.instant == dt.datetime(2026, 10, 20, 14, 0, tzinfo=UTC)
    # 23:00 in Tokyo, still the 20th
    assert resolved.window.local_date == dt.date(2026, 10, 20)
    assert resolved.window.start == dt.datetime(2026, 10, 19, 15, 0, tzinfo=UTC)


def test_missing_target_means_now():
    now = dt.datetime(2026, 10, 18, 12, 30, tzinfo=UTC)
    resolved = resolve_target(None, "UTC", now=now)
    assert resolved.instant == now
    blank = resolve_target("   ", "UTC", now=now)
    assert blank.instant == now


def test_window_contains_instant():
    resolved = resolve_target("2026-01-01T00:30", "Pacific/Auckland")
    assert resolved.window.start <= resolved.instant <= resolved.window.end


@pytest.mark.parametrize("tz_name", ["Not/AZone", ""])
def test_invalid_zone_raises(tz_name):
    with pytest.raises(InvalidInputError):
        resolve_target("2026-10-20T14:00", tz_name)


def test_unparseable_target_raises():
    with pytest.raises(InvalidInputError):
        resolve_target("tomorrow-ish", "UTC")


def test_dst_days_have_23_and_25_hours():
    tz = ZoneInfo("America/New_York")
    spring = local_day_window(dt.datetime(2026, 3, 8, 17, 0, tzinfo=UTC), tz)
    autumn = local_day_window(dt.datetime(2026, 11, 1, 17, 0, tzinfo=UTC), tz)
    assert len(local_day_instants(spring)) == 23
    assert len(local_day_instants(autumn)) == 25


def test_labels_follow_the_zone():
    instant = dt.datetime(2026, 10, 18, 0, 0, tzinfo=UTC)
    assert format_local_label(instant, ZoneInfo("Asia/Kolkata")) == "05:30"
    assert format_local_date(instant, ZoneInfo("UTC")) == "Oct 18, 2026"
    assert format_local_date(instant, ZoneInfo("America/Mazatlan")) == "Oct 17, 2026"


@pytest.mark.parametrize(
    "target,tz_name",
    [
        ("9999-12-31T23:00:00", "America/Mazatlan"),
        ("0001-01-01T00:00:00", "Asia/Tokyo"),
        ("9999-12-31T20:00:00Z", "Asia/Tokyo"),
    ],
)
def test_targets_past_the_datetime_range_raise(target, tz_name):
    with pytest.raises(InvalidInputError):
        resolve_target(target, tz_name)


def test_last_representable_day_still_has_24_hours():
    resolved = resolve_target("9999-12-31T12:00:00Z", "UTC")
    instants = local_day_instants(resolved.window)
    assert len(instants) == 24
    assert instants[-1] == dt.datetime(9999, 12, 31, 23, 0, tzinfo=UTC)
