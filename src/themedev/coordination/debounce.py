"""
Debounced task runner.

Collapses bursts of calls into a single deferred execution of an async task,
and holds that execution back until a readiness event is set.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class DebouncedTask:
    """
    Callable wrapper that runs ``task`` once calls stop arriving.

    Each call restarts a countdown of ``quiet_period`` seconds. When it
    elapses the timer waits for ``readiness`` (if given) and then runs the
    task. There is never more than one pending timer, and executions never
    overlap: a timer that fires while the previous execution is still
    running waits for it to finish first.
    """

    def __init__(
        self,
        task: Callable[[], Awaitable[None]],
        quiet_period: float = 1.0,
        readiness: Optional[asyncio.Event] = None,
        name: str = "debounced task",
    ):
        self.task = task
        self.quiet_period = quiet_period
        self.readiness = readiness
        self.name = name
        self.run_count = 0
        self._timer: Optional[asyncio.Task] = None
        self._executing: Optional[asyncio.Task] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def pending(self) -> bool:
        """True while a timer is counting down or waiting for readiness."""
        return self._timer is not None and not self._timer.done() and self._timer is not self._executing

    def __call__(self) -> None:
        if self.pending:
            self._timer.cancel()
        if self._lock is None:
            self._lock = asyncio.Lock()
        self._timer = asyncio.get_running_loop().create_task(self._fire(), name=self.name)

    async def _fire(self) -> None:
        await asyncio.sleep(self.quiet_period)
        if self.readiness is not None and not self.readiness.is_set():
            logger.debug(f"{self.name} is waiting for readiness")
            await self.readiness.wait()

        async with self._lock:
            # From here on a new call schedules a fresh timer instead of
            # cancelling this one.
            self._executing = asyncio.current_task()
            try:
                self.run_count += 1
                await self.task()
            except Exception as e:
                # Nobody awaits the timer, so this is the last place to report it.
                handle_error(e, f"running {self.name}", severity=ErrorSeverity.ERROR,
                             reraise=False, logger=logger)
            finally:
                self._executing = None

    def cancel(self) -> None:
        """Drop a pending execution; one already running is left alone."""
        if self.pending:
            self._timer.cancel()
            logger.debug(f"Cancelled pending {self.name}")

    async def wait(self) -> None:
        """Wait for the current timer, if any, to finish or be cancelled."""
        if self._timer is not None:
            await asyncio.gather(self._timer, return_exceptions=True)
