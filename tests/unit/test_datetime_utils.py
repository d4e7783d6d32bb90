"""Tests for UTC datetime helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from datalayer.shared.utils.datetime import (
    ensure_utc,
    format_rfc3339,
    parse_datetime,
    utc_now,
)

TS = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_utc_now_is_aware() -> None:
    assert utc_now().utcoffset() == timedelta(0)


def test_ensure_utc() -> None:
    assert ensure_utc(None) is None
    assert ensure_utc(datetime(2024, 1, 2, 3, 4, 5)) == TS
    plus_two = TS.astimezone(timezone(timedelta(hours=2)))
    assert ensure_utc(plus_two).tzinfo is timezone.utc


@pytest.mark.parametrize(
    "value",
    ["2024-01-02T03:04:05Z", "2024-01-02T05:04:05+02:00", "2024-01-02T03:04:05.000000Z"],
)
def test_parse_datetime(value) -> None:
    assert parse_datetime(value) == TS


def test_parse_datetime_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        parse_datetime("yesterday")
    with pytest.raises(TypeError):
        parse_datetime(5)


def test_format_rfc3339() -> None:
    assert format_rfc3339(TS) == "2024-01-02T03:04:05.000000Z"
    assert format_rfc3339(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000000Z"
