"""Background reaper for expired refresh tokens.

Ticks every ``interval_seconds`` on the running event loop. Each tick
launches a cleanup run unless the previous one is still executing, in which
case the tick is skipped. A failed run is logged and recorded in
``last_error``; the loop keeps going and the next tick retries.

Usage:
    reaper = TokenReaper(cleanup_expired_tokens, interval_seconds=3600, logger=logger)
    reaper.start()
    ...
    await reaper.stop()
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from tradeauth.domain.protocols import LoggerProtocol


class TokenReaper:
    """Periodic cleanup_expired runner with non-overlapping executions.

    Attributes:
        execution_count: Completed runs, failed ones included.
        last_purged: Rows removed by the last successful run.
        last_error: Exception of the last failed run (cleared on success).
        last_run_at: Start time of the last run.
    """

    def __init__(
        self,
        cleanup: Callable[[], Awaitable[int]],
        *,
        interval_seconds: float,
        logger: LoggerProtocol,
    ) -> None:
        """Initialize the reaper.

        Args:
            cleanup: Coroutine function running one cleanup in a fresh unit
                of work and returning the number of rows removed.
            interval_seconds: Seconds between ticks.
            logger: Structured logger.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cleanup = cleanup
        self._interval = interval_seconds
        self._logger = logger
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._run_task: asyncio.Task[int | None] | None = None
        self.is_executing = False
        self.execution_count = 0
        self.last_purged: int | None = None
        self.last_error: BaseException | None = None
        self.last_run_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Start ticking. Calling start on a running reaper does nothing."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self._loop(), name="token-reaper")
        self._logger.info("Token reaper started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop ticking and wait for an in-flight run to finish."""
        self._stop_event.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._run_task is not None and not self._run_task.done():
            await self._run_task
        self._logger.info(
            "Token reaper stopped", execution_count=self.execution_count
        )

    async def run_once(self) -> int | None:
        """Run one cleanup now.

        Returns:
            Rows removed, or None if the run failed or another run is in flight.
        """
        if self.is_executing:
            self._logger.warning("Token reaper run skipped, previous run still executing")
            return None

        self.is_executing = True
        self.last_run_at = datetime.now(UTC)
        try:
            purged = await self._cleanup()
        except Exception as e:
            self.last_error = e
            self._logger.error("Token reaper run failed", error=e)
            return None
        else:
            self.last_error = None
            self.last_purged = purged
            self._logger.info("Token reaper run completed", purged=purged)
            return purged
        finally:
            self.execution_count += 1
            self.is_executing = False

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            else:
                break

            if self.is_executing or (
                self._run_task is not None and not self._run_task.done()
            ):
                self._logger.warning(
                    "Token reaper tick skipped, previous run still executing"
                )
                continue
            self._run_task = asyncio.create_task(self.run_once())
