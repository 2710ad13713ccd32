"""
Balance router — points balance, withdrawals and withdrawal history.

Endpoints:
  GET  /api/user/balance              — Live balance and total withdrawn
  POST /api/user/balance/withdraw     — Spend points against a new order
  GET  /api/user/balance/withdrawals  — Withdrawal history, newest first

The balance is read live: snapshot plus anything not yet folded by the
balance settler, so a freshly processed accrual shows up immediately.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.database import get_db
from loyalty.dependencies import get_current_user
from loyalty.models.user import User
from loyalty.money import to_cents
from loyalty.schemas.balance import BalanceResponse, WithdrawRequest, WithdrawalResponse
from loyalty.services import balance_service

router = APIRouter()


@router.get(
    "/balance",
    response_model=BalanceResponse,
    summary="Get your points balance",
)
async def get_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current points and the total ever withdrawn."""
    current, withdrawn = await balance_service.load_balance(db, user.id)
    return BalanceResponse.from_amounts(current, withdrawn)


@router.post(
    "/balance/withdraw",
    response_model=WithdrawalResponse,
    summary="Spend points against a new order",
    responses={
        402: {"description": "Insufficient points"},
        409: {"description": "Order already paid with points"},
        422: {"description": "Invalid order number"},
    },
)
async def withdraw(
    request: WithdrawRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Withdraw **sum** points to pay for order **order**.

    The balance check and the withdrawal are a single atomic operation.
    """
    withdrawal = await balance_service.withdraw(
        db=db,
        customer_id=user.id,
        number=request.order,
        amount_cents=to_cents(request.sum),
    )
    return WithdrawalResponse.from_withdrawal(withdrawal)


@router.get(
    "/balance/withdrawals",
    response_model=list[WithdrawalResponse],
    summary="List your withdrawals",
    responses={204: {"description": "No withdrawals yet"}},
)
async def list_withdrawals(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List withdrawals, newest first. Returns 204 when there are none."""
    withdrawals = await balance_service.list_withdrawals(db, user.id)
    if not withdrawals:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [WithdrawalResponse.from_withdrawal(w) for w in withdrawals]
