"""Tests for the delay monitor pass over a batch of bookings."""

from datetime import date

import pytest
from conftest import at

from app.delay_monitor.service import DelayMonitorService
from app.eligibility.tiers import TierTable
from app.eligibility.types import CompensationTier

NOW = at("2024-06-15T14:00:00Z")


@pytest.fixture
def events():
    return []


@pytest.fixture
def service(events):
    return DelayMonitorService(on_booking_completed=events.append)


class TestCompletedJourney:
    def test_delayed_train_completes_with_final_delay(self, service, events, make_booking, make_train):
        """9007 on 2024-06-15, arriving 13:15 against 12:00 scheduled."""
        train = make_train(id="feed-9007", actual_arrival="2024-06-15T13:15:00Z")

        result = service.process([make_booking()], [train], NOW)

        assert result.processed == 1
        assert len(result.completed) == 1
        done = result.completed[0]
        assert done.delay_minutes == 75
        assert done.eligible
        assert done.tier.name == "Standard"
        assert done.completed_at == NOW
        assert result.eligible_for_claim == 1

        assert len(events) == 1
        assert events[0].booking_id == "b-1"
        assert events[0].train_id == "feed-9007"
        assert events[0].delay_minutes == 75
        assert events[0].is_eligible_for_claim
        assert events[0].tier_name == "Standard"

    def test_train_id_falls_back_to_trip_id(self, service, events, make_booking, make_train):
        service.process([make_booking()], [make_train(delay_minutes=10)], NOW)
        assert events[0].train_id == "9007-20240615"

    @pytest.mark.parametrize("delay,eligible,tier", [(59, False, None), (60, True, "Standard"), (185, True, "Severe")])
    def test_eligibility_at_boundaries(self, service, make_booking, make_train, delay, eligible, tier):
        result = service.process([make_booking()], [make_train(delay_minutes=delay)], NOW)

        done = result.completed[0]
        assert done.eligible is eligible
        assert (done.tier.name if done.tier else None) == tier

    def test_custom_tiers_and_threshold(self, make_booking, make_train):
        tiers = TierTable(
            [
                CompensationTier("Half", 30, 90, cash_percentage=0.5, voucher_percentage=0.5),
                CompensationTier("Full", 90, None, cash_percentage=1.0, voucher_percentage=1.0),
            ]
        )
        service = DelayMonitorService(tiers=tiers, compensation_threshold_minutes=30)

        done = service.process([make_booking()], [make_train(delay_minutes=45)], NOW).completed[0]

        assert done.eligible
        assert done.tier.name == "Half"


class TestBuckets:
    def test_every_booking_lands_in_one_bucket(self, service, make_booking, make_train):
        feed = [
            make_train(train_number="9007", delay_minutes=5),
            make_train(train_number="9010", departure="2024-06-15T13:30:00Z", arrival="2024-06-15T16:00:00Z"),
            make_train(train_number="9011", departure="2024-06-15T18:00:00Z", arrival="2024-06-15T21:00:00Z"),
        ]
        bookings = [
            make_booking(id="done", train_number="9007"),
            make_booking(id="running", train_number="9010"),
            make_booking(id="later", train_number="9011"),
            make_booking(id="tomorrow", train_number="9012", journey_date=date(2024, 6, 16)),
            make_booking(id="missing", train_number="9099"),
        ]

        result = service.process(bookings, feed, NOW)

        assert [c.booking.id for c in result.completed] == ["done"]
        assert result.in_progress == 1
        assert result.pending == 2
        assert result.skipped == 1
        assert result.errors == ()
        assert len(result.completed) + result.in_progress + result.pending + result.skipped == result.processed

    def test_empty_batch(self, service, events):
        result = service.process([], [], NOW)
        assert result.processed == 0
        assert result.summary()["completed"] == 0
        assert events == []


class TestFaultIsolation:
    def test_malformed_record_only_fails_its_booking(self, service, events, make_booking, make_train):
        broken = make_train(train_number="9010", arrival=None, service_date=date(2024, 6, 15))
        bookings = [
            make_booking(id="a", train_number="9007"),
            make_booking(id="bad", train_number="9010"),
            make_booking(id="c", train_number="9011"),
        ]
        feed = [make_train(train_number="9007", delay_minutes=70), broken, make_train(train_number="9011")]

        result = service.process(bookings, feed, NOW)

        assert [c.booking.id for c in result.completed] == ["a", "c"]
        assert [e.booking_id for e in result.errors] == ["bad"]
        assert "scheduled_arrival" in result.errors[0].error
        assert [e.booking_id for e in events] == ["a", "c"]

    def test_handler_failure_turns_booking_into_error(self, make_booking, make_train):
        seen = []

        def handler(event):
            if event.booking_id == "b":
                raise RuntimeError("queue down")
            seen.append(event.booking_id)

        service = DelayMonitorService(on_booking_completed=handler)
        bookings = [make_booking(id=i) for i in ("a", "b", "c")]

        result = service.process(bookings, [make_train(delay_minutes=80)], NOW)

        assert [c.booking.id for c in result.completed] == ["a", "c"]
        assert result.errors[0].booking_id == "b"
        assert result.errors[0].error == "queue down"
        assert seen == ["a", "c"]


class TestOrdering:
    def test_parallel_evaluation_keeps_input_order(self, events, make_booking, make_train):
        service = DelayMonitorService(on_booking_completed=events.append, max_workers=4)
        feed = [make_train(train_number=str(9000 + n), delay_minutes=n) for n in range(20)]
        bookings = [make_booking(id=f"b{n}", train_number=str(9000 + n)) for n in reversed(range(20))]

        result = service.process(bookings, feed, NOW)

        expected = [f"b{n}" for n in reversed(range(20))]
        assert [c.booking.id for c in result.completed] == expected
        assert [e.booking_id for e in events] == expected
        assert [c.delay_minutes for c in result.completed] == list(reversed(range(20)))

    def test_same_input_same_result(self, make_booking, make_train):
        service = DelayMonitorService()
        bookings = [make_booking(id="a"), make_booking(id="b", train_number="9099")]
        feed = [make_train(actual_arrival="2024-06-15T13:01:00Z")]

        assert service.process(bookings, feed, NOW) == service.process(bookings, feed, NOW)


class TestScenarios:
    def test_before_departure_is_pending(self, service, events, make_booking, make_train):
        train = make_train(departure="2024-06-15T11:30:00Z", actual_arrival="2024-06-15T13:15:00Z")

        result = service.process([make_booking()], [train], at("2024-06-15T11:00:00Z"))

        assert result.pending == 1
        assert result.completed == ()
        assert events == []

    def test_unmatched_booking_on_journey_day_is_skipped(self, service, make_booking, make_train):
        result = service.process([make_booking(train_number="9099")], [make_train()], NOW)
        assert result.skipped == 1
