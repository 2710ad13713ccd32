"""
Pydantic schemas for balance and withdrawal endpoints.

Amounts travel as decimal point values (e.g. 500.5) and are converted to
integer cents before they reach the service layer.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from loyalty.models.withdrawal import Withdrawal
from loyalty.money import from_cents


class BalanceResponse(BaseModel):
    """Response body for GET /api/user/balance."""
    current: float
    withdrawn: float

    @classmethod
    def from_amounts(cls, current_cents: int, withdrawn_cents: int) -> "BalanceResponse":
        return cls(
            current=float(from_cents(current_cents)),
            withdrawn=float(from_cents(withdrawn_cents)),
        )


class WithdrawRequest(BaseModel):
    """Request body for POST /api/user/balance/withdraw."""
    order: str = Field(min_length=1, max_length=100)
    sum: Decimal = Field(gt=0, decimal_places=2, description="Points to spend")


class WithdrawalResponse(BaseModel):
    """Public representation of a withdrawal."""
    order: str
    sum: float
    processed_at: datetime

    @classmethod
    def from_withdrawal(cls, withdrawal: Withdrawal) -> "WithdrawalResponse":
        return cls(
            order=withdrawal.number,
            sum=float(from_cents(withdrawal.amount_cents)),
            processed_at=withdrawal.processed_at,
        )
