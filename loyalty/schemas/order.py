"""Pydantic schemas for order endpoints."""

from datetime import datetime

from pydantic import BaseModel

from loyalty.models.order import Order, OrderStatus
from loyalty.money import from_cents


class OrderResponse(BaseModel):
    """
    Public representation of an uploaded order.

    accrual is only present once the order is PROCESSED.
    """
    number: str
    status: OrderStatus
    accrual: float | None = None
    uploaded_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        accrual = None
        if order.status == OrderStatus.PROCESSED:
            accrual = float(from_cents(order.accrual_cents))
        return cls(
            number=order.number,
            status=order.status,
            accrual=accrual,
            uploaded_at=order.uploaded_at,
        )
