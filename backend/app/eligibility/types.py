from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional


class Currency(str, Enum):
    EUR = "EUR"
    GBP = "GBP"


@dataclass(frozen=True)
class CompensationTier:
    """
    Delay band [min_delay_minutes, max_delay_minutes) -> compensation share.
    max_delay_minutes is None for the open-ended top tier.
    Percentages are fractions of the ticket price (0.25 == 25%).
    """

    name: str
    min_delay_minutes: int
    max_delay_minutes: Optional[int]
    cash_percentage: float
    voucher_percentage: float

    def contains(self, delay_minutes: int) -> bool:
        if delay_minutes < self.min_delay_minutes:
            return False
        return self.max_delay_minutes is None or delay_minutes < self.max_delay_minutes


@dataclass(frozen=True)
class CompensationResult:
    eligible: bool
    cash_amount: Decimal
    voucher_amount: Decimal
    tier: Optional[CompensationTier]
    currency: Currency
    ticket_price: Decimal
    delay_minutes: int


class EligibilityReason(str, Enum):
    INSUFFICIENT_DELAY = "insufficient_delay"
    CLAIM_WINDOW_NOT_OPEN = "claim_window_not_open"
    DEADLINE_EXPIRED = "deadline_expired"
    BELOW_MINIMUM_PAYOUT = "below_minimum_payout"
    ELIGIBLE = "eligible"


@dataclass(frozen=True)
class EligibilityStatus:
    eligible: bool
    reason: EligibilityReason
    failed_checks: tuple[EligibilityReason, ...]
    compensation: Optional[CompensationResult]
    deadline: datetime
    days_until_deadline: int
    claim_window_open: bool


@dataclass(frozen=True)
class ClaimTimingStatus:
    window_open: bool
    within_deadline: bool
    can_submit: bool
    deadline: datetime
    days_remaining: int
    hours_until_window_opens: int


MINIMUM_PAYOUT: dict[Currency, Decimal] = {
    Currency.EUR: Decimal("4"),
    Currency.GBP: Decimal("4"),
}

# Fallback rate; callers with a live rate pass their own.
DEFAULT_EUR_TO_GBP_RATE = Decimal("0.85")

CLAIM_WINDOW = timedelta(hours=24)
CLAIM_DEADLINE_MONTHS = 3
