from __future__ import annotations

from datetime import datetime
from typing import Optional

from app.delay_monitor.types import Booking
from app.eligibility.calculator import Number, calculate_compensation_detailed
from app.eligibility.deadline import (
    claim_deadline,
    days_until_deadline,
    is_claim_window_open,
    is_within_claim_deadline,
)
from app.eligibility.tiers import (
    COMPENSATION_THRESHOLD_MINUTES,
    TierTable,
    is_eligible_for_compensation,
)
from app.eligibility.types import Currency, EligibilityReason, EligibilityStatus


class EligibilityService:
    """
    Combines every claim check for a booking:
      - delay >= threshold
      - claim window open (24h after the journey)
      - before the claim deadline (3 months)
      - compensation above the minimum payout

    The primary reason is the first failed check, in that order.
    """

    def __init__(
        self,
        tiers: Optional[TierTable] = None,
        threshold_minutes: int = COMPENSATION_THRESHOLD_MINUTES,
    ):
        self.tiers = tiers
        self.threshold_minutes = threshold_minutes

    def check_eligibility(
        self,
        booking: Booking,
        delay_minutes: int,
        ticket_price: Number,
        *,
        current_time: datetime,
        currency: Currency = Currency.EUR,
    ) -> EligibilityStatus:
        failed: list[EligibilityReason] = []

        delay_ok = self.is_delay_eligible(delay_minutes)
        if not delay_ok:
            failed.append(EligibilityReason.INSUFFICIENT_DELAY)

        window_open = is_claim_window_open(booking.journey_date, current_time)
        if not window_open:
            failed.append(EligibilityReason.CLAIM_WINDOW_NOT_OPEN)

        if not is_within_claim_deadline(booking.journey_date, current_time):
            failed.append(EligibilityReason.DEADLINE_EXPIRED)

        compensation = calculate_compensation_detailed(delay_minutes, ticket_price, currency, self.tiers)
        if delay_ok and not compensation.eligible:
            failed.append(EligibilityReason.BELOW_MINIMUM_PAYOUT)

        eligible = not failed
        return EligibilityStatus(
            eligible=eligible,
            reason=EligibilityReason.ELIGIBLE if eligible else failed[0],
            failed_checks=tuple(failed),
            compensation=compensation if eligible else None,
            deadline=claim_deadline(booking.journey_date),
            days_until_deadline=days_until_deadline(booking.journey_date, current_time),
            claim_window_open=window_open,
        )

    def check_eligibility_from_booking(
        self,
        booking: Booking,
        ticket_price: Number,
        *,
        current_time: datetime,
        currency: Currency = Currency.EUR,
    ) -> Optional[EligibilityStatus]:
        """Uses the booking's recorded final delay; None until one is recorded."""
        if booking.final_delay_minutes is None:
            return None
        return self.check_eligibility(
            booking,
            booking.final_delay_minutes,
            ticket_price,
            current_time=current_time,
            currency=currency,
        )

    def is_delay_eligible(self, delay_minutes: int) -> bool:
        return is_eligible_for_compensation(delay_minutes, self.threshold_minutes)

    def can_claim_now(self, booking: Booking, current_time: datetime) -> bool:
        return is_claim_window_open(booking.journey_date, current_time) and is_within_claim_deadline(
            booking.journey_date, current_time
        )
