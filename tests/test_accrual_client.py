"""
Tests for the accrual service client.

httpx.MockTransport stands in for the accrual service, so every response
code the client handles can be produced without a network.
"""

import json

import httpx
import pytest

from loyalty.accrual_client import (
    AccrualClient,
    AccrualOrderNotFoundError,
    AccrualRateLimitedError,
    AccrualResponseError,
    AccrualTransportError,
)
from loyalty.models.order import OrderStatus

NUMBER = "12345678903"


def make_client(handler) -> AccrualClient:
    return AccrualClient("http://accrual.test/", transport=httpx.MockTransport(handler))


def respond_json(status_code: int, body: dict, headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body, headers=headers)
    return handler


class TestLookupSuccess:

    async def test_requests_order_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json={"order": NUMBER, "status": "PROCESSING"})

        client = make_client(handler)
        await client.lookup(NUMBER)
        await client.aclose()

        assert str(seen[0]) == f"http://accrual.test/api/orders/{NUMBER}"

    async def test_registered_maps_to_processing(self):
        client = make_client(respond_json(200, {"order": NUMBER, "status": "REGISTERED"}))
        result = await client.lookup(NUMBER)
        await client.aclose()

        assert result.number == NUMBER
        assert result.status == OrderStatus.PROCESSING
        assert result.accrual_cents == 0

    async def test_processed_carries_accrual_in_cents(self):
        client = make_client(respond_json(
            200, {"order": NUMBER, "status": "PROCESSED", "accrual": 729.98}
        ))
        result = await client.lookup(NUMBER)
        await client.aclose()

        assert result.status == OrderStatus.PROCESSED
        assert result.accrual_cents == 72998

    async def test_invalid_status(self):
        client = make_client(respond_json(200, {"order": NUMBER, "status": "INVALID"}))
        result = await client.lookup(NUMBER)
        await client.aclose()

        assert result.status == OrderStatus.INVALID


class TestLookupFailures:

    async def test_rate_limited_with_retry_after(self):
        client = make_client(respond_json(429, {}, headers={"Retry-After": "60"}))
        with pytest.raises(AccrualRateLimitedError) as exc_info:
            await client.lookup(NUMBER)
        await client.aclose()

        assert exc_info.value.retry_after == 60
        assert exc_info.value.number == NUMBER

    async def test_rate_limited_without_retry_after(self):
        client = make_client(lambda request: httpx.Response(429))
        with pytest.raises(AccrualRateLimitedError) as exc_info:
            await client.lookup(NUMBER)
        await client.aclose()

        assert exc_info.value.retry_after is None

    async def test_unknown_order(self):
        client = make_client(lambda request: httpx.Response(204))
        with pytest.raises(AccrualOrderNotFoundError):
            await client.lookup(NUMBER)
        await client.aclose()

    async def test_server_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(AccrualResponseError) as exc_info:
            await client.lookup(NUMBER)
        await client.aclose()

        assert exc_info.value.status_code == 500

    @pytest.mark.parametrize("body", [
        b"not json",
        json.dumps({"order": NUMBER}).encode(),
        json.dumps({"order": NUMBER, "status": "LOST"}).encode(),
    ])
    async def test_malformed_body(self, body):
        client = make_client(lambda request: httpx.Response(200, content=body))
        with pytest.raises(AccrualResponseError):
            await client.lookup(NUMBER)
        await client.aclose()

    async def test_negative_accrual_rejected(self):
        client = make_client(respond_json(
            200, {"order": NUMBER, "status": "PROCESSED", "accrual": -5}
        ))
        with pytest.raises(AccrualResponseError):
            await client.lookup(NUMBER)
        await client.aclose()

    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(AccrualTransportError):
            await client.lookup(NUMBER)
        await client.aclose()
