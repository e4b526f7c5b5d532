from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, Query

from app.api.v1.schemas.compensation import CompensationQuote, CompensationTierOut
from app.core.deps import get_tier_table
from app.eligibility.calculator import (
    calculate_compensation_detailed,
    format_compensation_amount,
    get_minimum_payout,
)
from app.eligibility.tiers import TierTable
from app.eligibility.types import Currency

router = APIRouter(prefix="/v1/compensation", tags=["compensation"])


@router.get("/tiers", response_model=list[CompensationTierOut])
def list_tiers(tiers: TierTable = Depends(get_tier_table)):
    return [
        CompensationTierOut(
            name=t.name,
            min_delay_minutes=t.min_delay_minutes,
            max_delay_minutes=t.max_delay_minutes,
            cash_percentage=t.cash_percentage,
            voucher_percentage=t.voucher_percentage,
        )
        for t in tiers
    ]


@router.get("", response_model=CompensationQuote)
def quote_compensation(
    delay_minutes: int = Query(..., ge=0, description="Final arrival delay in minutes"),
    ticket_price: Decimal = Query(..., ge=0, description="Ticket price in `currency`"),
    currency: Literal["EUR", "GBP"] = Query("EUR"),
    tiers: TierTable = Depends(get_tier_table),
):
    cur = Currency(currency)
    result = calculate_compensation_detailed(delay_minutes, ticket_price, cur, tiers)

    return CompensationQuote(
        delay_minutes=delay_minutes,
        ticket_price=result.ticket_price,
        currency=cur.value,
        eligible=result.eligible,
        tier=result.tier.name if result.tier else None,
        cash_amount=result.cash_amount,
        voucher_amount=result.voucher_amount,
        minimum_payout=get_minimum_payout(cur),
        cash_display=format_compensation_amount(result.cash_amount, cur),
        voucher_display=format_compensation_amount(result.voucher_amount, cur),
    )
