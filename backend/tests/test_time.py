"""Tests for UTC time helpers."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.jobs.ingest.utils.time import UTC, as_utc, parse_iso_ts, utc_date, utc_midnight


class TestParseIsoTs:
    def test_zulu(self):
        assert parse_iso_ts("2024-06-15T12:00:00Z") == datetime(2024, 6, 15, 12, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        value = parse_iso_ts("2024-06-15T14:00:00+02:00")
        assert value.tzinfo == UTC
        assert value.hour == 12

    def test_naive_read_as_utc(self):
        assert parse_iso_ts("2024-06-15T12:00:00") == datetime(2024, 6, 15, 12, tzinfo=UTC)

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank(self, value):
        assert parse_iso_ts(value) is None

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_iso_ts("yesterday")


class TestUtcHelpers:
    def test_as_utc(self):
        cet = datetime(2024, 6, 15, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(cet) == datetime(2024, 6, 14, 23, 0, tzinfo=UTC)

    def test_utc_date(self):
        assert utc_date(date(2024, 6, 15)) == date(2024, 6, 15)
        assert utc_date(datetime(2024, 6, 15, 23, 0, tzinfo=timezone(timedelta(hours=-3)))) == date(2024, 6, 16)

    def test_utc_midnight(self):
        assert utc_midnight(date(2024, 6, 15)) == datetime(2024, 6, 15, tzinfo=UTC)
