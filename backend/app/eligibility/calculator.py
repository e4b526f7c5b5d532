"""
Compensation amounts for a delayed journey.

Pure functions. Amounts are Decimals rounded half-up to cents; a claim whose
cash and voucher amounts are both below the currency's minimum payout is not
paid.

  calculate_compensation(90, 100, Currency.EUR)  -> 25.00 cash / 60.00 voucher
  calculate_compensation(45, 100)                -> None (below threshold)
  calculate_compensation(60, 5)                  -> None (1.25 cash / 3.00 voucher)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from app.eligibility.tiers import TierTable, get_tier_for_delay
from app.eligibility.types import (
    DEFAULT_EUR_TO_GBP_RATE,
    MINIMUM_PAYOUT,
    CompensationResult,
    Currency,
)

Number = Union[int, float, str, Decimal]

_CENT = Decimal("0.01")
_SYMBOLS = {Currency.EUR: "€", Currency.GBP: "£"}


def to_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _amounts(ticket_price: Decimal, cash_pct: float, voucher_pct: float) -> tuple[Decimal, Decimal]:
    cash = to_money(ticket_price * Decimal(str(cash_pct)))
    voucher = to_money(ticket_price * Decimal(str(voucher_pct)))
    return cash, voucher


def meets_minimum_payout(amount: Number, currency: Currency) -> bool:
    return Decimal(str(amount)) >= MINIMUM_PAYOUT[Currency(currency)]


def get_minimum_payout(currency: Currency) -> Decimal:
    return MINIMUM_PAYOUT[Currency(currency)]


def calculate_compensation_detailed(
    delay_minutes: int,
    ticket_price: Number,
    currency: Currency = Currency.EUR,
    tiers: Optional[TierTable] = None,
) -> CompensationResult:
    """
    Always returns a result; eligible=False (with zero amounts when no tier
    applies) explains why nothing is paid.
    """
    currency = Currency(currency)
    price = Decimal(str(ticket_price))
    tier = get_tier_for_delay(delay_minutes, tiers)

    if tier is None:
        return CompensationResult(
            eligible=False,
            cash_amount=to_money(0),
            voucher_amount=to_money(0),
            tier=None,
            currency=currency,
            ticket_price=price,
            delay_minutes=delay_minutes,
        )

    cash, voucher = _amounts(price, tier.cash_percentage, tier.voucher_percentage)
    meets_minimum = meets_minimum_payout(cash, currency) or meets_minimum_payout(voucher, currency)

    return CompensationResult(
        eligible=meets_minimum,
        cash_amount=cash,
        voucher_amount=voucher,
        tier=tier,
        currency=currency,
        ticket_price=price,
        delay_minutes=delay_minutes,
    )


def calculate_compensation(
    delay_minutes: int,
    ticket_price: Number,
    currency: Currency = Currency.EUR,
    tiers: Optional[TierTable] = None,
) -> Optional[CompensationResult]:
    result = calculate_compensation_detailed(delay_minutes, ticket_price, currency, tiers)
    return result if result.eligible else None


def convert_eur_to_gbp(eur_amount: Number, exchange_rate: Number = DEFAULT_EUR_TO_GBP_RATE) -> Decimal:
    return to_money(Decimal(str(eur_amount)) * Decimal(str(exchange_rate)))


def convert_gbp_to_eur(gbp_amount: Number, exchange_rate: Number = DEFAULT_EUR_TO_GBP_RATE) -> Decimal:
    return to_money(Decimal(str(gbp_amount)) / Decimal(str(exchange_rate)))


def format_compensation_amount(amount: Number, currency: Currency) -> str:
    return f"{_SYMBOLS[Currency(currency)]}{to_money(amount)}"
