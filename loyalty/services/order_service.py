"""
Order service — uploads, listings and the reconciler's store operations.

Handlers use:
  - store_order(): claim an order number for a user
  - list_orders(): the user's orders, newest first

The status reconciler uses:
  - orders_pending_reconciliation(): non-terminal orders to poll
  - apply_status_batch(): write the changed statuses in one statement

Upload outcomes are not exceptions: re-uploading your own order is a
success (200), only someone else's order is a conflict (409).
"""

import enum
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import bindparam, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.accrual_client import AccrualResult
from loyalty.exceptions import InvalidOrderNumberError
from loyalty.models.order import Order, OrderStatus, TERMINAL_STATUSES
from loyalty.validators import is_valid_order_number


class UploadOutcome(str, enum.Enum):
    ACCEPTED = "accepted"                  # New order stored
    ALREADY_UPLOADED = "already_uploaded"  # Same user uploaded it before
    CONFLICT = "conflict"                  # Another user owns this number


async def _order_owner(db: AsyncSession, number: str) -> uuid.UUID | None:
    result = await db.execute(
        select(Order.customer_id).where(Order.number == number)
    )
    return result.scalar_one_or_none()


def _outcome_for(owner_id: uuid.UUID, customer_id: uuid.UUID) -> UploadOutcome:
    if owner_id == customer_id:
        return UploadOutcome.ALREADY_UPLOADED
    return UploadOutcome.CONFLICT


async def store_order(
    db: AsyncSession,
    number: str,
    customer_id: uuid.UUID,
) -> UploadOutcome:
    """
    Store a newly uploaded order with status NEW and zero accrual.

    The number is validated before the database is touched. If the number
    already exists, the outcome depends on who owns it.

    Note: when a concurrent upload of the same number wins the race, the
    session is rolled back to read the winner; nothing else should be
    pending in it.

    Raises:
        InvalidOrderNumberError: If the number fails the Luhn check.
    """
    number = number.strip()
    if not is_valid_order_number(number):
        raise InvalidOrderNumberError(number)

    owner_id = await _order_owner(db, number)
    if owner_id is not None:
        return _outcome_for(owner_id, customer_id)

    now = datetime.now(timezone.utc)
    db.add(Order(
        number=number,
        customer_id=customer_id,
        status=OrderStatus.NEW,
        accrual_cents=0,
        uploaded_at=now,
        updated_at=now,
    ))

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        owner_id = await _order_owner(db, number)
        if owner_id is None:
            raise
        return _outcome_for(owner_id, customer_id)

    return UploadOutcome.ACCEPTED


async def list_orders(
    db: AsyncSession,
    customer_id: uuid.UUID,
) -> list[Order]:
    """List a user's orders, most recently uploaded first."""
    result = await db.execute(
        select(Order)
        .where(Order.customer_id == customer_id)
        .order_by(Order.uploaded_at.desc(), Order.number)
    )
    return list(result.scalars().all())


async def orders_pending_reconciliation(db: AsyncSession) -> dict[str, OrderStatus]:
    """
    Map every non-terminal order number to its current status.

    Oldest uploads come first, so a cycle cut short by rate limiting has
    at least served the orders that have waited longest.
    """
    result = await db.execute(
        select(Order.number, Order.status)
        .where(Order.status.not_in(TERMINAL_STATUSES))
        .order_by(Order.uploaded_at, Order.number)
    )
    return {number: status for number, status in result.all()}


async def apply_status_batch(
    db: AsyncSession,
    batch: Sequence[AccrualResult],
) -> int:
    """
    Write reconciled statuses and accruals in a single executemany UPDATE.

    Every row gets a fresh updated_at, which is what makes a new accrual
    visible to the balance fold. Only PROCESSED rows carry an accrual, and
    orders already in a terminal state are left alone, so an accrual is
    folded exactly once.

    Returns:
        The number of results submitted (0 for an empty batch, which
        issues no statement at all).
    """
    if not batch:
        return 0

    orders = Order.__table__
    now = datetime.now(timezone.utc)
    stmt = (
        update(orders)
        .where(orders.c.number == bindparam("b_number"))
        # executemany cannot expand an IN list, hence two comparisons
        .where(orders.c.status != OrderStatus.INVALID)
        .where(orders.c.status != OrderStatus.PROCESSED)
        .values(
            status=bindparam("b_status"),
            income=bindparam("b_income"),
            ts=bindparam("b_ts"),
        )
    )
    await db.execute(
        stmt,
        [
            {
                "b_number": result.number,
                "b_status": result.status,
                "b_income": (
                    result.accrual_cents
                    if result.status == OrderStatus.PROCESSED
                    else 0
                ),
                "b_ts": now,
            }
            for result in batch
        ],
    )
    return len(batch)
