"""
Order model — a purchase order submitted for accrual calculation.

Lifecycle:
    NEW ──► PROCESSING ──► PROCESSED
     │           │
     └───────────┴──────► INVALID

An order is created as NEW with a zero accrual when a user uploads it. Only
the status reconciler changes it afterwards, copying the accrual service's
verdict. PROCESSED and INVALID are terminal: the reconciler stops polling the
order and never updates the row again.

Timestamps:
  - uploaded_at: when the user submitted the order (shown in the API)
  - updated_at:  when the status/accrual last changed. This is the timestamp
    the balance fold compares against the snapshot watermark, so an accrual
    set by the reconciler is picked up by the next fold and by live reads.

Order numbers are globally unique (primary key): the same number cannot be
claimed by two users.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from loyalty.database import Base


class OrderStatus(str, enum.Enum):
    NEW = "NEW"                 # Uploaded, not yet seen by the accrual service
    PROCESSING = "PROCESSING"   # Accrual calculation in progress
    INVALID = "INVALID"         # Rejected by the accrual service (terminal)
    PROCESSED = "PROCESSED"     # Accrual calculated (terminal)


TERMINAL_STATUSES = (OrderStatus.INVALID, OrderStatus.PROCESSED)


class Order(Base):
    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("income >= 0", name="ck_orders_non_negative_income"),
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

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, length=30),
        nullable=False,
        default=OrderStatus.NEW,
        index=True,
    )

    # Accrued points in cents
    accrual_cents: Mapped[int] = mapped_column(
        "income",
        Integer,
        nullable=False,
        default=0,
    )

    uploaded_at: Mapped[datetime] = mapped_column(
        "uploaded",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        "ts",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
