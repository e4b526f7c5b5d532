"""Tests for booking to feed-record matching."""

from datetime import date

import pytest

from app.delay_monitor.matcher import FeedIndex, match_booking_to_train, match_bookings_to_trains
from app.delay_monitor.types import MatchFailureReason, MatchResult


class TestMatchBookingToTrain:
    def test_exact_trip_matches(self, make_booking, make_train):
        train = make_train()
        result = match_booking_to_train(make_booking(), [make_train(train_number="9010"), train])

        assert result.matched
        assert result.train is train
        assert result.reason is None

    def test_unknown_train_number_is_not_found(self, make_booking, make_train):
        result = match_booking_to_train(make_booking(train_number="9099"), [make_train()])

        assert not result.matched
        assert result.train is None
        assert result.reason is MatchFailureReason.NOT_FOUND

    def test_train_running_on_other_date_is_date_mismatch(self, make_booking, make_train):
        result = match_booking_to_train(make_booking(journey_date=date(2024, 6, 16)), [make_train()])
        assert result.reason is MatchFailureReason.DATE_MISMATCH

    def test_declared_trip_with_other_number_is_train_number_mismatch(self, make_booking, make_train):
        """The upstream trip key names 9008 on the 15th, but the record's number is 9009."""
        record = make_train(train_number="9009", feed_trip_id="9008-20240615")
        result = match_booking_to_train(make_booking(train_number="9008"), [record])
        assert result.reason is MatchFailureReason.TRAIN_NUMBER_MISMATCH

    def test_empty_feed(self, make_booking):
        assert match_booking_to_train(make_booking(), []).reason is MatchFailureReason.NOT_FOUND

    def test_blank_booking_number_never_matches(self, make_booking, make_train):
        result = match_booking_to_train(make_booking(train_number=" - "), [make_train()])
        assert result.reason is MatchFailureReason.NOT_FOUND

    def test_spelling_differences_are_normalized(self, make_booking, make_train):
        train = make_train(train_number="ES 9007")
        assert match_booking_to_train(make_booking(train_number="es-9007"), [train]).train is train

    def test_first_duplicate_wins(self, make_booking, make_train):
        first = make_train(id="feed-1")
        second = make_train(id="feed-2", actual_arrival="2024-06-15T13:00:00Z")

        assert match_booking_to_train(make_booking(), [first, second]).train is first
        assert match_booking_to_train(make_booking(), [second, first]).train is second

    def test_service_date_overrides_departure_date(self, make_booking, make_train):
        """An overnight train departing before midnight UTC keeps its service date."""
        train = make_train(departure="2024-06-14T23:30:00Z", service_date=date(2024, 6, 15))
        assert match_booking_to_train(make_booking(), [train]).train is train

    def test_record_without_any_date_is_left_out(self, make_booking, make_train):
        broken = make_train(train_number="9007", departure=None)
        good = make_train(train_number="9010")
        index = FeedIndex([broken, good])

        assert index.invalid == 1
        assert len(index) == 1
        assert index.match(make_booking(train_number="9010")).train is good


class TestMatchAll:
    def test_preserves_input_order(self, make_booking, make_train):
        feed = [make_train(train_number="9007"), make_train(train_number="9010")]
        bookings = [
            make_booking(id="a", train_number="9010"),
            make_booking(id="b", train_number="9099"),
            make_booking(id="c", train_number="9007"),
        ]

        results = match_bookings_to_trains(bookings, feed)

        assert [r.matched for r in results] == [True, False, True]
        assert results[0].train.train_number == "9010"
        assert results[2].train.train_number == "9007"

    def test_bookings_are_independent(self, make_booking, make_train):
        """Two bookings on the same trip both match the same record."""
        feed = [make_train()]
        results = match_bookings_to_trains([make_booking(id="a"), make_booking(id="b")], feed)
        assert results[0].train is results[1].train is feed[0]

    def test_same_result_as_single_match(self, make_booking, make_train):
        feed = [make_train(), make_train(train_number="9010")]
        bookings = [make_booking(train_number=n) for n in ("9007", "9010", "9011")]

        assert match_bookings_to_trains(bookings, feed) == [match_booking_to_train(b, feed) for b in bookings]


class TestMatchResultInvariant:
    def test_matched_needs_train(self):
        with pytest.raises(ValueError):
            MatchResult(matched=True)

    def test_unmatched_needs_reason(self, make_train):
        with pytest.raises(ValueError):
            MatchResult(matched=False, train=make_train(), reason=MatchFailureReason.NOT_FOUND)
