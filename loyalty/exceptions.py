"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handlers registered here translate them
into HTTP responses with a consistent body: {"detail": ..., "error_type": ...}

Exception hierarchy:
    LoyaltyAPIError (base)
    ├── DuplicateLoginError       — registering a login that is taken
    ├── InvalidCredentialsError   — wrong login or password
    ├── InvalidOrderNumberError   — order number fails the Luhn check
    ├── InsufficientFundsError    — withdrawal larger than the balance
    ├── DuplicateWithdrawalError  — second withdrawal against one order
    └── BalanceNotFoundError      — user has no balance snapshot

Accrual service failures have their own hierarchy (loyalty.accrual_client)
and are handled inside the background workers; they never reach a client.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from loyalty.money import from_cents


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LoyaltyAPIError(Exception):
    """Base exception for all Loyalty API domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class DuplicateLoginError(LoyaltyAPIError):
    """Raised when attempting to register with a login that's already in use."""

    def __init__(self, login: str):
        self.login = login
        super().__init__(f"Login {login} is already registered")


class InvalidCredentialsError(LoyaltyAPIError):
    """Raised when login credentials are incorrect."""

    def __init__(self):
        super().__init__("Invalid login or password")


class InvalidOrderNumberError(LoyaltyAPIError):
    """Raised when an order number is not a Luhn-valid digit string."""

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Invalid order number: {number!r}")


class InsufficientFundsError(LoyaltyAPIError):
    """
    Raised when a withdrawal exceeds the available points balance.

    Attributes:
        customer_id: The user whose balance is too low.
        requested_cents: The amount the user tried to withdraw.
        available_cents: The live balance at the time of the attempt.
    """

    def __init__(
        self,
        customer_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.customer_id = customer_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {from_cents(requested_cents)}, "
            f"available {from_cents(available_cents)}"
        )


class DuplicateWithdrawalError(LoyaltyAPIError):
    """Raised when a withdrawal for the same order number already exists."""

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"Order {number} has already been paid with points")


class BalanceNotFoundError(LoyaltyAPIError):
    """Raised when a user has no balance snapshot row."""

    def __init__(self, customer_id: uuid.UUID):
        self.customer_id = customer_id
        super().__init__(f"Balance for user {customer_id} not found")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Called once during app construction in main.py.
    """

    @app.exception_handler(DuplicateLoginError)
    async def duplicate_login_handler(
        request: Request, exc: DuplicateLoginError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "duplicate_login"},
        )

    @app.exception_handler(InvalidCredentialsError)
    async def invalid_credentials_handler(
        request: Request, exc: InvalidCredentialsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "error_type": "invalid_credentials"},
        )

    @app.exception_handler(InvalidOrderNumberError)
    async def invalid_order_number_handler(
        request: Request, exc: InvalidOrderNumberError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.detail, "error_type": "invalid_order_number"},
        )

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=402,  # Payment Required: not enough points
            content={
                "detail": exc.detail,
                "error_type": "insufficient_funds",
                "requested": float(from_cents(exc.requested_cents)),
                "available": float(from_cents(exc.available_cents)),
            },
        )

    @app.exception_handler(DuplicateWithdrawalError)
    async def duplicate_withdrawal_handler(
        request: Request, exc: DuplicateWithdrawalError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "duplicate_withdrawal"},
        )

    @app.exception_handler(BalanceNotFoundError)
    async def balance_not_found_handler(
        request: Request, exc: BalanceNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "balance_not_found"},
        )
