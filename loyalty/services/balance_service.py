"""
Balance service — live balance reads, withdrawals and the balance fold.

THE WATERMARK CONTRACT:
  A user's Balance row is a snapshot covering every order accrual and
  withdrawal with timestamp <= watermark. Two paths read that watermark:

  - load_balance() (request time): snapshot + everything newer than the
    watermark, summed on the fly. A read never misses an accrual that landed
    after the last fold.
  - fold_balances() (balance settler): moves the unfolded rows into the
    snapshot for ALL users in one UPDATE and advances each watermark to the
    newest row it folded. Rows already folded are excluded next time, so the
    fold is idempotent and the watermark never moves backwards.

  Both paths build their sums from the same correlated sub-queries
  (_unfolded_accruals / _unfolded_withdrawals), so they cannot disagree on
  which rows are "unfolded".

Withdrawals:
  The sufficient-funds check and the insert are one conditional
  INSERT ... SELECT ... WHERE live_balance >= amount, issued after locking the
  user's snapshot row. Two concurrent withdrawals for the same user cannot
  both pass the check, and the fold (an UPDATE of that row) waits for the
  withdrawal's transaction.

SQLite note:
  with_for_update() is a no-op on SQLite. SQLite takes its write lock at the
  INSERT, which is still a single statement, so the check cannot interleave.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import exists, func, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.database import greatest
from loyalty.exceptions import (
    BalanceNotFoundError,
    DuplicateWithdrawalError,
    InsufficientFundsError,
    InvalidOrderNumberError,
)
from loyalty.models.balance import Balance
from loyalty.models.order import Order
from loyalty.models.withdrawal import Withdrawal
from loyalty.validators import is_valid_order_number


# ---------------------------------------------------------------------------
# Unfolded-delta sub-queries (correlated to the enclosing Balance row)
# ---------------------------------------------------------------------------

def _newer_orders(cutoff: datetime | None = None):
    criteria = [
        Order.customer_id == Balance.customer_id,
        Order.updated_at > Balance.watermark,
    ]
    if cutoff is not None:
        criteria.append(Order.updated_at <= cutoff)
    return criteria


def _newer_withdrawals(cutoff: datetime | None = None):
    criteria = [
        Withdrawal.customer_id == Balance.customer_id,
        Withdrawal.created_at > Balance.watermark,
    ]
    if cutoff is not None:
        criteria.append(Withdrawal.created_at <= cutoff)
    return criteria


def _unfolded_accruals(cutoff: datetime | None = None):
    return (
        select(func.coalesce(func.sum(Order.accrual_cents), 0))
        .where(*_newer_orders(cutoff))
        .scalar_subquery()
    )


def _unfolded_withdrawals(cutoff: datetime | None = None):
    return (
        select(func.coalesce(func.sum(Withdrawal.amount_cents), 0))
        .where(*_newer_withdrawals(cutoff))
        .scalar_subquery()
    )


def _live_balance_select(customer_id: uuid.UUID):
    accrued = _unfolded_accruals()
    withdrawn = _unfolded_withdrawals()
    return select(
        (Balance.balance_cents + accrued - withdrawn).label("current"),
        (Balance.total_withdrawn_cents + withdrawn).label("withdrawn"),
    ).where(Balance.customer_id == customer_id)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def load_balance(
    db: AsyncSession,
    customer_id: uuid.UUID,
) -> tuple[int, int]:
    """
    Return the user's live (current_cents, withdrawn_cents).

    Raises:
        BalanceNotFoundError: If the user has no snapshot row.
    """
    result = await db.execute(_live_balance_select(customer_id))
    row = result.one_or_none()
    if row is None:
        raise BalanceNotFoundError(customer_id)
    return int(row.current), int(row.withdrawn)


async def list_withdrawals(
    db: AsyncSession,
    customer_id: uuid.UUID,
) -> list[Withdrawal]:
    """List a user's withdrawals, most recent first."""
    result = await db.execute(
        select(Withdrawal)
        .where(Withdrawal.customer_id == customer_id)
        .order_by(Withdrawal.processed_at.desc(), Withdrawal.number)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Withdrawals
# ---------------------------------------------------------------------------

async def withdraw(
    db: AsyncSession,
    customer_id: uuid.UUID,
    number: str,
    amount_cents: int,
) -> Withdrawal:
    """
    Spend points against a new order.

    Args:
        db: Database session.
        customer_id: The authenticated user.
        number: The order being paid with points (must be Luhn-valid).
        amount_cents: Positive amount in cents.

    Returns:
        The created Withdrawal.

    Raises:
        InvalidOrderNumberError: If the number fails the Luhn check.
        BalanceNotFoundError: If the user has no snapshot row.
        DuplicateWithdrawalError: If this order was already paid with points.
        InsufficientFundsError: If the live balance is below the amount.
    """
    number = number.strip()
    if not is_valid_order_number(number):
        raise InvalidOrderNumberError(number)

    # Lock the snapshot row: serializes withdrawals (and the fold) per user
    result = await db.execute(
        select(Balance.customer_id)
        .where(Balance.customer_id == customer_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
    )
    if result.scalar_one_or_none() is None:
        raise BalanceNotFoundError(customer_id)

    if await db.get(Withdrawal, number) is not None:
        raise DuplicateWithdrawalError(number)

    withdrawals = Withdrawal.__table__
    now = datetime.now(timezone.utc)
    available = (
        select(Balance.balance_cents + _unfolded_accruals() - _unfolded_withdrawals())
        .where(Balance.customer_id == customer_id)
        .scalar_subquery()
    )

    stmt = insert(withdrawals).from_select(
        [
            withdrawals.c.number,
            withdrawals.c.customer,
            withdrawals.c.withdraw,
            withdrawals.c.processed,
            withdrawals.c.ts,
        ],
        select(
            literal(number, withdrawals.c.number.type),
            literal(customer_id, withdrawals.c.customer.type),
            literal(amount_cents, withdrawals.c.withdraw.type),
            literal(now, withdrawals.c.processed.type),
            literal(now, withdrawals.c.ts.type),
        ).where(available >= amount_cents),
    )

    try:
        result = await db.execute(stmt)
    except IntegrityError as exc:
        raise DuplicateWithdrawalError(number) from exc

    if result.rowcount == 0:
        current, _ = await load_balance(db, customer_id)
        raise InsufficientFundsError(
            customer_id=customer_id,
            requested_cents=amount_cents,
            available_cents=current,
        )

    return Withdrawal(
        number=number,
        customer_id=customer_id,
        amount_cents=amount_cents,
        processed_at=now,
        created_at=now,
    )


# ---------------------------------------------------------------------------
# Fold
# ---------------------------------------------------------------------------

async def fold_balances(
    db: AsyncSession,
    cutoff: datetime | None = None,
) -> int:
    """
    Fold every unfolded order accrual and withdrawal into the snapshots.

    One UPDATE covers all users. Only rows with watermark < ts <= cutoff are
    folded; rows newer than the cutoff stay unfolded (and keep showing up in
    live reads) until a later fold.

    Args:
        db: Database session. The caller commits.
        cutoff: Newest timestamp to fold. Defaults to now.

    Returns:
        The number of snapshots that changed.
    """
    if cutoff is None:
        cutoff = datetime.now(timezone.utc)

    accrued = _unfolded_accruals(cutoff)
    withdrawn = _unfolded_withdrawals(cutoff)
    newest_order = (
        select(func.max(Order.updated_at))
        .where(*_newer_orders(cutoff))
        .scalar_subquery()
    )
    newest_withdrawal = (
        select(func.max(Withdrawal.created_at))
        .where(*_newer_withdrawals(cutoff))
        .scalar_subquery()
    )

    stmt = (
        update(Balance)
        .where(
            or_(
                exists().where(*_newer_orders(cutoff)),
                exists().where(*_newer_withdrawals(cutoff)),
            )
        )
        .values(
            balance_cents=Balance.balance_cents + accrued - withdrawn,
            total_withdrawn_cents=Balance.total_withdrawn_cents + withdrawn,
            watermark=greatest(
                Balance.watermark,
                func.coalesce(newest_order, Balance.watermark),
                func.coalesce(newest_withdrawal, Balance.watermark),
            ),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount
