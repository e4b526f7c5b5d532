"""Tests for journey status classification and delay calculation."""

from datetime import datetime, timedelta

import pytest
from conftest import at

from app.core.errors import ProcessingError
from app.delay_monitor.checker import (
    COMPLETION_BUFFER,
    calculate_delay_minutes,
    check_journey_status,
    is_journey_complete,
)
from app.delay_monitor.types import JourneyStatus


class TestCalculateDelayMinutes:
    @pytest.mark.parametrize(
        "actual,expected",
        [
            ("2024-06-15T13:15:00Z", 75),
            ("2024-06-15T12:00:00Z", 0),
            ("2024-06-15T12:00:29Z", 0),
            ("2024-06-15T12:00:30Z", 1),  # half a minute rounds up
            ("2024-06-15T13:59:30Z", 120),
            ("2024-06-15T11:50:00Z", 0),  # early arrival clamps to zero
        ],
    )
    def test_from_actual_arrival(self, make_train, actual, expected):
        assert calculate_delay_minutes(make_train(actual_arrival=actual)) == expected

    def test_offsets_are_compared_in_utc(self, make_train):
        train = make_train(actual_arrival="2024-06-15T15:15:00+02:00")
        assert calculate_delay_minutes(train) == 75

    def test_falls_back_to_feed_delay(self, make_train):
        assert calculate_delay_minutes(make_train(delay_minutes=42)) == 42

    def test_negative_feed_delay_clamps(self, make_train):
        assert calculate_delay_minutes(make_train(delay_minutes=-3)) == 0

    def test_no_data_means_on_time(self, make_train):
        assert calculate_delay_minutes(make_train()) == 0

    def test_actual_arrival_wins_over_feed_delay(self, make_train):
        train = make_train(actual_arrival="2024-06-15T12:30:00Z", delay_minutes=5)
        assert calculate_delay_minutes(train) == 30


class TestCheckJourneyStatus:
    @pytest.mark.parametrize(
        "now,expected",
        [
            ("2024-06-15T08:59:59Z", JourneyStatus.PENDING),
            ("2024-06-15T09:00:00Z", JourneyStatus.IN_PROGRESS),
            ("2024-06-15T12:30:00Z", JourneyStatus.IN_PROGRESS),
            ("2024-06-15T12:59:59Z", JourneyStatus.IN_PROGRESS),
            ("2024-06-15T13:00:00Z", JourneyStatus.COMPLETED),
            ("2024-06-20T00:00:00Z", JourneyStatus.COMPLETED),
        ],
    )
    def test_with_train(self, make_booking, make_train, now, expected):
        result = check_journey_status(make_booking(), make_train(), at(now))
        assert result.status is expected

    def test_completed_carries_delay(self, make_booking, make_train):
        result = check_journey_status(
            make_booking(),
            make_train(actual_arrival="2024-06-15T13:15:00Z"),
            at("2024-06-15T14:00:00Z"),
        )

        assert result.status is JourneyStatus.COMPLETED
        assert result.delay_minutes == 75
        assert result.booking_id == "b-1"

    def test_delay_only_set_when_completed(self, make_booking, make_train):
        result = check_journey_status(
            make_booking(), make_train(actual_arrival="2024-06-15T13:15:00Z"), at("2024-06-15T12:00:00Z")
        )
        assert result.delay_minutes is None

    def test_no_train_before_journey_day_is_pending(self, make_booking):
        result = check_journey_status(make_booking(), None, at("2024-06-14T23:59:59Z"))
        assert result.status is JourneyStatus.PENDING

    def test_no_train_on_journey_day_is_unknown(self, make_booking):
        result = check_journey_status(make_booking(), None, at("2024-06-15T00:00:00Z"))
        assert result.status is JourneyStatus.UNKNOWN
        assert result.train is None

    def test_matched_train_is_never_unknown(self, make_booking, make_train):
        train = make_train()
        start = at("2024-06-14T00:00:00Z")
        for hour in range(0, 96, 3):
            now = start + timedelta(hours=hour)
            assert check_journey_status(make_booking(), train, now).status is not JourneyStatus.UNKNOWN

    def test_naive_current_time_read_as_utc(self, make_booking, make_train):
        result = check_journey_status(make_booking(), make_train(), datetime(2024, 6, 15, 13, 0))
        assert result.status is JourneyStatus.COMPLETED

    def test_missing_scheduled_arrival_raises(self, make_booking, make_train):
        with pytest.raises(ProcessingError):
            check_journey_status(make_booking(), make_train(arrival=None), at("2024-06-15T14:00:00Z"))

    def test_is_deterministic(self, make_booking, make_train):
        booking, train, now = make_booking(), make_train(delay_minutes=61), at("2024-06-15T14:00:00Z")
        assert check_journey_status(booking, train, now) == check_journey_status(booking, train, now)


class TestIsJourneyComplete:
    def test_buffer_boundary(self, make_train):
        train = make_train()
        assert not is_journey_complete(train, at("2024-06-15T12:59:59Z"))
        assert is_journey_complete(train, at("2024-06-15T12:00:00Z") + COMPLETION_BUFFER)
