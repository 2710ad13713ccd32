"""
Orders router — upload order numbers and list them.

Endpoints:
  POST /api/user/orders  — Upload an order number (text/plain body)
  GET  /api/user/orders  — List own orders with status and accrual

Upload status codes:
  202 — accepted, the order will be sent for accrual calculation
  200 — this user already uploaded the order
  409 — another user already uploaded the order
  422 — the number fails the Luhn check
  400 — the body is not text/plain
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from loyalty.database import get_db
from loyalty.dependencies import get_current_user
from loyalty.models.user import User
from loyalty.schemas.order import OrderResponse
from loyalty.services import order_service
from loyalty.services.order_service import UploadOutcome

router = APIRouter()


@router.post(
    "/orders",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload an order number for accrual",
    responses={
        200: {"description": "Order already uploaded by this user"},
        409: {"description": "Order already uploaded by another user"},
        422: {"description": "Invalid order number"},
    },
)
async def upload_order(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upload an order number as the plain-text request body."""
    content_type = request.headers.get("content-type", "")
    if content_type and not content_type.startswith("text/plain"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unexpected content type {content_type!r}, expected text/plain",
        )

    body = await request.body()
    try:
        number = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body is not valid UTF-8",
        )

    outcome = await order_service.store_order(db, number, user.id)

    if outcome == UploadOutcome.CONFLICT:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": "Order was already uploaded by another user",
                "error_type": "order_conflict",
            },
        )
    if outcome == UploadOutcome.ALREADY_UPLOADED:
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.get(
    "/orders",
    response_model=list[OrderResponse],
    response_model_exclude_none=True,
    summary="List your orders",
    responses={204: {"description": "No orders uploaded yet"}},
)
async def list_orders(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List uploaded orders, newest first. Returns 204 when there are none."""
    orders = await order_service.list_orders(db, user.id)
    if not orders:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [OrderResponse.from_order(order) for order in orders]
