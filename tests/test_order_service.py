"""
Tests for the order store operations used by handlers and the reconciler.

These tests verify:
  - store_order's three outcomes and validation before any store access
  - orders_pending_reconciliation excludes terminal orders
  - apply_status_batch writes statuses/accruals, bumps the update timestamp,
    ignores empty batches and never rewrites terminal orders
"""

import pytest
from sqlalchemy import select

from loyalty.accrual_client import AccrualResult
from loyalty.exceptions import InvalidOrderNumberError
from loyalty.models.order import Order, OrderStatus
from loyalty.services import order_service
from loyalty.services.order_service import UploadOutcome


async def get_order(session_factory, number: str) -> Order:
    async with session_factory() as db:
        return (await db.execute(select(Order).where(Order.number == number))).scalar_one()


class TestStoreOrder:

    async def test_outcomes(self, session_factory, create_user, make_order_number):
        alice = await create_user("alice")
        bob = await create_user("bob")
        number = make_order_number(1)

        async with session_factory.begin() as db:
            assert await order_service.store_order(db, number, alice) == UploadOutcome.ACCEPTED
        async with session_factory.begin() as db:
            assert await order_service.store_order(db, number, alice) == UploadOutcome.ALREADY_UPLOADED
        async with session_factory.begin() as db:
            assert await order_service.store_order(db, number, bob) == UploadOutcome.CONFLICT

        order = await get_order(session_factory, number)
        assert order.customer_id == alice
        assert order.status == OrderStatus.NEW
        assert order.accrual_cents == 0

    async def test_invalid_number_raises(self, session_factory, create_user):
        alice = await create_user("alice")
        async with session_factory() as db:
            with pytest.raises(InvalidOrderNumberError):
                await order_service.store_order(db, "12345678904", alice)


class TestPendingReconciliation:

    async def test_terminal_orders_excluded(self, session_factory, create_user, make_order_number):
        alice = await create_user("alice")
        numbers = [make_order_number(i) for i in range(4)]
        async with session_factory.begin() as db:
            for number in numbers:
                await order_service.store_order(db, number, alice)

        async with session_factory.begin() as db:
            await order_service.apply_status_batch(db, [
                AccrualResult(numbers[0], OrderStatus.PROCESSED, 100),
                AccrualResult(numbers[1], OrderStatus.INVALID),
                AccrualResult(numbers[2], OrderStatus.PROCESSING),
            ])

        async with session_factory() as db:
            pending = await order_service.orders_pending_reconciliation(db)

        assert pending == {
            numbers[2]: OrderStatus.PROCESSING,
            numbers[3]: OrderStatus.NEW,
        }


class TestApplyStatusBatch:

    async def test_empty_batch_is_noop(self, session_factory):
        async with session_factory.begin() as db:
            assert await order_service.apply_status_batch(db, []) == 0

    async def test_updates_status_accrual_and_timestamp(
        self, session_factory, create_user, make_order_number
    ):
        alice = await create_user("alice")
        number = make_order_number(1)
        async with session_factory.begin() as db:
            await order_service.store_order(db, number, alice)
        before = await get_order(session_factory, number)

        async with session_factory.begin() as db:
            written = await order_service.apply_status_batch(
                db, [AccrualResult(number, OrderStatus.PROCESSED, 72998)]
            )
        assert written == 1

        after = await get_order(session_factory, number)
        assert after.status == OrderStatus.PROCESSED
        assert after.accrual_cents == 72998
        assert after.updated_at > before.updated_at
        assert after.uploaded_at == before.uploaded_at

    async def test_accrual_ignored_until_processed(
        self, session_factory, create_user, make_order_number
    ):
        alice = await create_user("alice")
        number = make_order_number(1)
        async with session_factory.begin() as db:
            await order_service.store_order(db, number, alice)

        async with session_factory.begin() as db:
            await order_service.apply_status_batch(
                db, [AccrualResult(number, OrderStatus.PROCESSING, 500)]
            )

        order = await get_order(session_factory, number)
        assert order.status == OrderStatus.PROCESSING
        assert order.accrual_cents == 0

    async def test_terminal_orders_not_rewritten(
        self, session_factory, create_user, make_order_number
    ):
        alice = await create_user("alice")
        number = make_order_number(1)
        async with session_factory.begin() as db:
            await order_service.store_order(db, number, alice)
        async with session_factory.begin() as db:
            await order_service.apply_status_batch(
                db, [AccrualResult(number, OrderStatus.PROCESSED, 1000)]
            )
        processed = await get_order(session_factory, number)

        async with session_factory.begin() as db:
            await order_service.apply_status_batch(
                db, [AccrualResult(number, OrderStatus.PROCESSED, 9999)]
            )

        order = await get_order(session_factory, number)
        assert order.accrual_cents == 1000
        assert order.updated_at == processed.updated_at

    async def test_mixed_batch_written_in_one_call(
        self, session_factory, create_user, make_order_number
    ):
        alice = await create_user("alice")
        numbers = [make_order_number(i) for i in range(3)]
        async with session_factory.begin() as db:
            for number in numbers:
                await order_service.store_order(db, number, alice)
        async with session_factory.begin() as db:
            await order_service.apply_status_batch(
                db, [AccrualResult(numbers[0], OrderStatus.INVALID)]
            )

        async with session_factory.begin() as db:
            await order_service.apply_status_batch(db, [
                AccrualResult(numbers[0], OrderStatus.PROCESSED, 700),
                AccrualResult(numbers[1], OrderStatus.PROCESSED, 250),
                AccrualResult(numbers[2], OrderStatus.PROCESSING),
            ])

        first, second, third = [await get_order(session_factory, n) for n in numbers]
        assert (first.status, first.accrual_cents) == (OrderStatus.INVALID, 0)
        assert (second.status, second.accrual_cents) == (OrderStatus.PROCESSED, 250)
        assert (third.status, third.accrual_cents) == (OrderStatus.PROCESSING, 0)
