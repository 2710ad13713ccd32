"""
Withdrawal model — points spent against a new order.

A withdrawal is only written after the sufficient-balance check passes (both
happen in one statement, see balance_service.withdraw) and is never modified
afterwards. The order number is the primary key, so an order can be paid with
points at most once.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from loyalty.database import Base


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    __table_args__ = (
        CheckConstraint("withdraw > 0", name="ck_withdrawals_positive_amount"),
    )

    number: Mapped[str] = mapped_column(
        String(100),
        primary_key=True,
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        "customer",
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Withdrawn points in cents, always positive
    amount_cents: Mapped[int] = mapped_column(
        "withdraw",
        Integer,
        nullable=False,
    )

    # Shown to the user
    processed_at: Mapped[datetime] = mapped_column(
        "processed",
        DateTime(timezone=True),
        nullable=False,
    )

    # Compared against the balance watermark by the fold
    created_at: Mapped[datetime] = mapped_column(
        "ts",
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
