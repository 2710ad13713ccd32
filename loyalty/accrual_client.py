"""
HTTP client for the external accrual service.

The accrual service computes how many points an order earns. It exposes one
endpoint per order:

    GET {ACCRUAL_SYSTEM_ADDRESS}/api/orders/{number}

    200  {"order": "...", "status": "REGISTERED|PROCESSING|INVALID|PROCESSED",
          "accrual": 500.5}          (accrual only present once PROCESSED)
    204  order is not registered with the service
    429  too many requests; Retry-After says when to come back

lookup() makes exactly one request and never retries. Every non-success case
raises a subclass of AccrualError; the status reconciler decides what to do
with it (skip the order, or stop the cycle on rate limiting).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

import httpx
from pydantic import BaseModel, Field, ValidationError

from loyalty.models.order import OrderStatus
from loyalty.money import to_cents

logger = logging.getLogger(__name__)


# The accrual service's REGISTERED means "known, calculation not started",
# which is still in progress from our side.
_STATUS_MAP = {
    "REGISTERED": OrderStatus.PROCESSING,
    "PROCESSING": OrderStatus.PROCESSING,
    "INVALID": OrderStatus.INVALID,
    "PROCESSED": OrderStatus.PROCESSED,
}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class AccrualError(Exception):
    """Base class for accrual lookup failures."""

    def __init__(self, number: str, detail: str):
        self.number = number
        self.detail = detail
        super().__init__(f"order {number}: {detail}")


class AccrualRateLimitedError(AccrualError):
    """The service answered 429; no more requests should be sent for now."""

    def __init__(self, number: str, retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__(number, f"rate limited (retry after {retry_after}s)")


class AccrualOrderNotFoundError(AccrualError):
    """The service does not know this order (yet)."""

    def __init__(self, number: str):
        super().__init__(number, "not registered in the accrual service")


class AccrualResponseError(AccrualError):
    """Unexpected status code or an undecodable body."""

    def __init__(self, number: str, detail: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(number, detail)


class AccrualTransportError(AccrualError):
    """The request never got a response (connection refused, timeout, ...)."""


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

class AccrualPayload(BaseModel):
    """Body of a 200 response."""
    order: str
    status: Literal["REGISTERED", "PROCESSING", "INVALID", "PROCESSED"]
    accrual: Decimal = Field(default=Decimal(0), ge=0)


@dataclass(frozen=True)
class AccrualResult:
    """The accrual service's view of one order, in our own terms."""
    number: str
    status: OrderStatus
    accrual_cents: int = 0


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class AccrualClient:
    """
    Thin async wrapper around httpx for single-order lookups.

    Args:
        base_url: Accrual service address, e.g. "http://localhost:8085".
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def lookup(self, number: str) -> AccrualResult:
        """
        Ask the accrual service for the current state of one order.

        Raises:
            AccrualRateLimitedError: 429 from the service.
            AccrualOrderNotFoundError: 204 or 404 from the service.
            AccrualResponseError: any other status, or a malformed body.
            AccrualTransportError: the request failed before a response.
        """
        try:
            response = await self._client.get(f"/api/orders/{number}")
        except httpx.HTTPError as exc:
            raise AccrualTransportError(number, str(exc) or type(exc).__name__) from exc

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            retry_after = response.headers.get("Retry-After", "")
            raise AccrualRateLimitedError(
                number, int(retry_after) if retry_after.isdigit() else None
            )

        if response.status_code in (httpx.codes.NO_CONTENT, httpx.codes.NOT_FOUND):
            raise AccrualOrderNotFoundError(number)

        if response.status_code != httpx.codes.OK:
            raise AccrualResponseError(
                number,
                f"unexpected status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = AccrualPayload.model_validate_json(response.content)
        except ValidationError as exc:
            raise AccrualResponseError(
                number, f"malformed body: {exc.error_count()} error(s)",
                status_code=response.status_code,
            ) from exc

        if payload.order != number:
            logger.warning(
                "Accrual service answered for order %s when asked about %s",
                payload.order, number,
            )

        return AccrualResult(
            number=number,
            status=_STATUS_MAP[payload.status],
            accrual_cents=to_cents(payload.accrual),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
