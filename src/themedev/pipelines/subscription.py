"""
Subscription handles for long-running watch tasks.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class Subscription:
    """
    Handle for a background watch task.

    The task is expected to return once ``stop_event`` is set. Unsubscribing
    sets the event, waits for the task to wind down and cancels it if it
    does not finish within ``stop_timeout`` seconds. Calling
    ``unsubscribe()`` again is safe and returns once the task has ended.
    """

    def __init__(self, name: str, task: asyncio.Task, stop_event: asyncio.Event,
                 stop_timeout: float = 5.0):
        self.name = name
        self.task = task
        self._stop_event = stop_event
        self._stop_timeout = stop_timeout
        self._unsubscribed = False

    @property
    def active(self) -> bool:
        return not self._unsubscribed and not self.task.done()

    def exception(self) -> Optional[BaseException]:
        """The error that ended the task, if it ended with one."""
        if not self.task.done() or self.task.cancelled():
            return None
        return self.task.exception()

    async def unsubscribe(self) -> None:
        if self._unsubscribed:
            await asyncio.gather(self.task, return_exceptions=True)
            return
        self._unsubscribed = True
        self._stop_event.set()

        if not self.task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self.task), timeout=self._stop_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} did not stop within {self._stop_timeout}s, cancelling")
                self.task.cancel()
            except asyncio.CancelledError:
                if not self.task.cancelled():
                    raise
            except Exception:
                # Already surfaced by whoever watches the task.
                pass

        await asyncio.gather(self.task, return_exceptions=True)
        logger.debug(f"Unsubscribed {self.name}")
