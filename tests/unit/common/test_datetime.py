"""Tests for common.datetime module."""

from datetime import datetime, timedelta, timezone

import pytest

from common.datetime import from_epoch_ms, parse_date, parse_datetime, parse_optional_date, to_epoch_ms


class TestParseDatetime:
    def test_none_returns_current_utc(self) -> None:
        before = datetime.now(timezone.utc)
        result = parse_datetime(None)
        after = datetime.now(timezone.utc)
        assert before <= result <= after
        assert result.tzinfo is not None

    def test_datetime_passthrough(self) -> None:
        dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert parse_datetime(dt) is dt

    def test_iso_string_with_z_suffix(self) -> None:
        result = parse_datetime("2024-01-01T12:00:00Z")
        assert result == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestParseDate:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Thu, 17 Apr 2025 10:15:04 GMT", (2025, 4, 17)),
            ("2025-04-17T10:15:04Z", (2025, 4, 17)),
            ("Qui, 17 Abr 2025 10:15:04 -0300", (2025, 4, 17)),
            ("17 Ene 2025 08:00:00", (2025, 1, 17)),
            ("17 Févr 2025 10:00:00", (2025, 2, 17)),
            ("17 Mär 2025 08:00:00 +0100", (2025, 3, 17)),
            ("17 Mag 2025 08:00:00", (2025, 5, 17)),
        ],
    )
    def test_localized_formats(self, value: str, expected: tuple[int, int, int]) -> None:
        result = parse_date(value)
        assert (result.year, result.month, result.day) == expected
        assert result.tzinfo is not None

    def test_named_timezone_offset(self) -> None:
        result = parse_date("Thu, 17 Apr 2025 10:15:04 EST")
        assert result.utcoffset() == timedelta(hours=-5)

    def test_naive_input_is_utc(self) -> None:
        result = parse_date("2025-04-17 10:15:04")
        assert result.tzinfo == timezone.utc

    def test_unparseable_returns_now(self) -> None:
        before = datetime.now(timezone.utc)
        result = parse_date("not a date at all")
        after = datetime.now(timezone.utc)
        assert before <= result <= after

    def test_empty_returns_now(self) -> None:
        before = datetime.now(timezone.utc)
        result = parse_date("")
        after = datetime.now(timezone.utc)
        assert before <= result <= after

    def test_optional_missing_is_none(self) -> None:
        assert parse_optional_date(None) is None
        assert parse_optional_date("  ") is None


class TestEpochMs:
    def test_round_trip_to_millisecond(self) -> None:
        dt = datetime(2024, 6, 15, 8, 30, 0, 123000, tzinfo=timezone.utc)
        assert from_epoch_ms(to_epoch_ms(dt)) == dt
