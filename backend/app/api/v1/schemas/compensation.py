from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CompensationTierOut(BaseModel):
    name: str
    min_delay_minutes: int
    max_delay_minutes: Optional[int] = Field(None, description="Exclusive upper bound; null for the open-ended tier")

    cash_percentage: float = Field(..., description="Fraction of the ticket price, 0.25 == 25%")
    voucher_percentage: float


class CompensationQuote(BaseModel):
    delay_minutes: int
    ticket_price: Decimal
    currency: Literal["EUR", "GBP"]

    eligible: bool
    tier: Optional[str] = None

    cash_amount: Decimal
    voucher_amount: Decimal
    minimum_payout: Decimal

    cash_display: str
    voucher_display: str
