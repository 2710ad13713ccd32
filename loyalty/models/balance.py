"""
Balance model — the per-user points snapshot.

The snapshot is a cache, not the source of truth. balance_cents and
total_withdrawn_cents cover exactly the orders and withdrawals whose
timestamp is <= watermark. Anything newer is "unfolded":

  - live reads (balance_service.load_balance) add unfolded rows on the fly
  - the balance settler periodically folds them into the snapshot and moves
    the watermark forward

Because the watermark only ever moves forward, a fold never counts a row
twice and running it again with nothing new changes nothing.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from loyalty.database import Base


class Balance(Base):
    __tablename__ = "balances"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        "customer",
        ForeignKey("users.id"),
        primary_key=True,
    )

    watermark: Mapped[datetime] = mapped_column(
        "ts",
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(
        "balance",
        Integer,
        nullable=False,
        default=0,
    )

    total_withdrawn_cents: Mapped[int] = mapped_column(
        "total_withdraw",
        Integer,
        nullable=False,
        default=0,
    )
