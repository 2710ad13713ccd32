"""
Balance settler — periodically folds new accruals and withdrawals into the
per-user balance snapshots.

Runs are aligned to multiples of the interval since the Unix epoch, so the
default daily interval fires at UTC midnight. Each run is one UPDATE over all
users (see balance_service.fold_balances). A failed or timed-out run changes
nothing and is simply repeated at the next tick: the fold is idempotent.

Rows stamped within the last `lag_seconds` are left for the next run, so a
transaction that stamped its rows before the fold started but committed after
it cannot end up behind the new watermark.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loyalty.services import balance_service
from loyalty.workers.base import PeriodicWorker

logger = logging.getLogger(__name__)


class BalanceSettler(PeriodicWorker):

    name = "balance-settler"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float = 86400.0,
        timeout_seconds: float = 300.0,
        lag_seconds: float = 60.0,
    ):
        super().__init__(interval_seconds, timeout_seconds)
        if lag_seconds < 0:
            raise ValueError(f"lag_seconds must not be negative, got: {lag_seconds}")
        self._session_factory = session_factory
        self._lag_seconds = lag_seconds

    def seconds_until_next_run(self, now: float | None = None) -> float:
        if now is None:
            now = time.time()
        return self._interval_seconds - (now % self._interval_seconds)

    async def run_once(self) -> int | None:
        """
        Fold everything up to now - lag.

        Returns:
            The number of snapshots folded, or None if the run failed.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self._lag_seconds)

        try:
            async with asyncio.timeout(self._timeout_seconds):
                async with self._session_factory.begin() as db:
                    folded = await balance_service.fold_balances(db, cutoff)
        except TimeoutError:
            logger.error(
                "Balance fold exceeded its %ss deadline; retrying at the next tick",
                self._timeout_seconds,
            )
            return None
        except SQLAlchemyError:
            logger.exception("Balance fold failed; retrying at the next tick")
            return None

        logger.info("Folded %d balance snapshots up to %s", folded, cutoff.isoformat())
        return folded
