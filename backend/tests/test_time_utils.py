"""Timestamp helpers: naive UTC storage, inclusive day bounds, Z serialization."""

from datetime import datetime, timedelta, timezone

import pytest

from pharmapos.time_utils import parse_iso_datetime, to_utc_z, utcnow


def test_utcnow_is_naive_utc():
    now = utcnow()
    assert now.tzinfo is None
    assert abs(datetime.now(timezone.utc).replace(tzinfo=None) - now) < timedelta(seconds=5)


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_values_are_none(value):
    assert parse_iso_datetime(value) is None


def test_trailing_z_and_offsets_become_naive_utc():
    assert parse_iso_datetime("2026-10-19T08:30:00Z") == datetime(2026, 10, 19, 8, 30)
    assert parse_iso_datetime("2026-10-19T02:30:00-06:00") == datetime(2026, 10, 19, 8, 30)
    assert parse_iso_datetime("2026-10-19T08:30:00") == datetime(2026, 10, 19, 8, 30)


def test_date_only_covers_the_whole_day():
    start = parse_iso_datetime("2026-10-19")
    end = parse_iso_datetime("2026-10-19", end_of_day=True)

    assert start == datetime(2026, 10, 19)
    assert end == datetime(2026, 10, 19, 23, 59, 59, 999999)
    assert start <= datetime(2026, 10, 19, 18, 45) <= end


def test_end_of_day_leaves_full_timestamps_alone():
    assert parse_iso_datetime("2026-10-19T12:00:00Z", end_of_day=True) == datetime(2026, 10, 19, 12)


def test_garbage_raises_value_error():
    with pytest.raises(ValueError):
        parse_iso_datetime("ayer")


def test_to_utc_z():
    assert to_utc_z(None) is None
    assert to_utc_z(datetime(2026, 10, 19, 8, 30, 15, 123456)) == "2026-10-19T08:30:15Z"
    aware = datetime(2026, 10, 19, 2, 30, tzinfo=timezone(timedelta(hours=-6)))
    assert to_utc_z(aware) == "2026-10-19T08:30:00Z"
