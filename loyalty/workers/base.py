"""
Periodic background worker.

A worker is one asyncio.Task that sleeps until its next run, runs one tick,
and repeats until stop() cancels it. Ticks of the same worker never overlap:
the next sleep only starts once the current tick has returned. Each subclass
bounds its own tick with a timeout and handles its expected failures; the
loop additionally logs anything unexpected so a single bad tick never ends
the worker.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class PeriodicWorker:
    """
    Base class for the status reconciler and the balance settler.

    Subclasses implement run_once() and may override seconds_until_next_run()
    to align runs to wall-clock boundaries.
    """

    name = "worker"

    def __init__(self, interval_seconds: float, timeout_seconds: float):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got: {interval_seconds}")
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got: {timeout_seconds}")

        self._interval_seconds = interval_seconds
        self._timeout_seconds = timeout_seconds
        self._task: asyncio.Task | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self) -> float:
        """Delay before the next tick. Fixed interval by default."""
        return self._interval_seconds

    async def run_once(self):
        raise NotImplementedError

    async def start(self) -> None:
        """Start the background task. Calling start() twice is a no-op."""
        if self.is_running:
            logger.warning("%s already running, ignoring start request", self.name)
            return

        self._task = asyncio.create_task(self._run_loop(), name=self.name)
        logger.info("%s started (interval=%ss)", self.name, self._interval_seconds)

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("%s stopped", self.name)

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self.seconds_until_next_run())
            try:
                await self.run_once()
            except Exception:
                logger.exception("%s tick failed; retrying at the next tick", self.name)
