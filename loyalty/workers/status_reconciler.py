"""
Status reconciler — brings stored order statuses in line with the accrual
service.

One cycle:
  1. Read every non-terminal order and its current status.
  2. Look each one up in the accrual service (sequentially by default, or up
     to `concurrency` lookups at a time).
       - lookup failure / unknown order / unexpected response: log, skip the
         order until the next cycle
       - rate limited: stop issuing lookups for the rest of the cycle
       - same status as on record: nothing to do
       - changed status: add to the batch
  3. Write the batch in one transaction. An empty batch writes nothing.

The read and the lookups are bounded by the cycle timeout. Results gathered
before the deadline (or before a rate limit) are still written; the batch
write gets its own timeout of the same length, so a tick lasts at most twice
the cycle timeout. No database
transaction is open while the accrual service is being called.
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty.accrual_client import (
    AccrualClient,
    AccrualError,
    AccrualRateLimitedError,
    AccrualResult,
)
from loyalty.models.order import OrderStatus
from loyalty.services import order_service
from loyalty.workers.base import PeriodicWorker

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """What one reconciliation cycle did."""
    pending: int = 0
    polled: int = 0
    unchanged: int = 0
    failed: int = 0
    updated: int = 0
    rate_limited: bool = False
    timed_out: bool = False
    write_failed: bool = False


class StatusReconciler(PeriodicWorker):
    """
    Args:
        session_factory: Opens short-lived sessions for the pending read and
                         the batch write.
        accrual_client: Client used for the per-order lookups.
        interval_seconds: Delay between cycles (default 5 minutes).
        timeout_seconds: Deadline for one cycle's read + lookups (default 60s).
        concurrency: Maximum lookups in flight at once.
    """

    name = "status-reconciler"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accrual_client: AccrualClient,
        interval_seconds: float = 300.0,
        timeout_seconds: float = 60.0,
        concurrency: int = 1,
    ):
        super().__init__(interval_seconds, timeout_seconds)
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got: {concurrency}")
        self._session_factory = session_factory
        self._client = accrual_client
        self._concurrency = concurrency

    async def run_once(self) -> ReconciliationReport:
        report = ReconciliationReport()
        batch: list[AccrualResult] = []

        try:
            async with asyncio.timeout(self._timeout_seconds):
                async with self._session_factory() as db:
                    pending = await order_service.orders_pending_reconciliation(db)
                report.pending = len(pending)
                await self._collect(pending, batch, report)
        except TimeoutError:
            report.timed_out = True
            logger.warning(
                "Reconciliation cycle hit its %ss deadline after %d lookups",
                self._timeout_seconds, report.polled,
            )
        except SQLAlchemyError:
            logger.exception("Failed to read orders pending reconciliation")
            return report

        if batch:
            try:
                async with asyncio.timeout(self._timeout_seconds):
                    async with self._session_factory.begin() as db:
                        await order_service.apply_status_batch(db, batch)
            except TimeoutError:
                report.write_failed = True
                logger.error(
                    "Writing %d order status updates exceeded %ss; next cycle will retry",
                    len(batch), self._timeout_seconds,
                )
            except SQLAlchemyError:
                report.write_failed = True
                logger.exception(
                    "Failed to write %d order status updates; next cycle will retry",
                    len(batch),
                )
            else:
                report.updated = len(batch)

        logger.info(
            "Reconciliation cycle: pending=%d polled=%d updated=%d unchanged=%d "
            "failed=%d rate_limited=%s timed_out=%s",
            report.pending, report.polled, report.updated, report.unchanged,
            report.failed, report.rate_limited, report.timed_out,
        )
        return report

    async def _collect(
        self,
        pending: dict[str, OrderStatus],
        batch: list[AccrualResult],
        report: ReconciliationReport,
    ) -> None:
        semaphore = asyncio.Semaphore(self._concurrency)
        rate_limited = asyncio.Event()

        async def poll(number: str, current: OrderStatus) -> None:
            async with semaphore:
                if rate_limited.is_set():
                    return
                report.polled += 1
                try:
                    result = await self._client.lookup(number)
                except AccrualRateLimitedError as exc:
                    rate_limited.set()
                    report.rate_limited = True
                    logger.warning(
                        "Accrual service rate limit hit at order %s (retry after %ss); "
                        "ending cycle early",
                        number, exc.retry_after,
                    )
                    return
                except AccrualError as exc:
                    report.failed += 1
                    logger.warning("Skipping order %s this cycle: %s", number, exc.detail)
                    return

                if result.status == current:
                    report.unchanged += 1
                    return
                batch.append(result)

        await asyncio.gather(*(poll(number, status) for number, status in pending.items()))
