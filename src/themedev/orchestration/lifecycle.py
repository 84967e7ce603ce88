"""
Shutdown sequencing.

Watchers and build workers must stop emitting before the proxy goes away,
otherwise late builds would send reloads into a closed proxy.
"""

import asyncio
import logging
from typing import Any, List, Optional

from ..pipelines.subscription import Subscription
from ..pipelines.worker_pool import BuildWorkerPool
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


class ShutdownController:
    """
    Releases everything the dev server started, in a fixed order:

    1. pipeline watch subscriptions
    2. the generic file watcher
    3. the shared build worker pool
    4. the pending lint pass
    5. the event dispatcher
    6. the reload proxy

    Subscriptions and the dispatcher are registered as they are created.
    ``shutdown()`` runs the sequence once; later calls wait for it.
    """

    def __init__(self, worker_pool: BuildWorkerPool, proxy: Any, lint_trigger: Optional[Any] = None):
        self.worker_pool = worker_pool
        self.proxy = proxy
        self.lint_trigger = lint_trigger
        self.pipeline_subscriptions: List[Subscription] = []
        self.file_subscription: Optional[Subscription] = None
        self.dispatcher: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_task is not None and self._shutdown_task.done()

    async def shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown(), name="shutdown")
        await asyncio.shield(self._shutdown_task)

    async def _step(self, description: str, coro) -> None:
        try:
            await coro
        except Exception as e:
            handle_error(e, description, severity=ErrorSeverity.ERROR, reraise=False, logger=logger)

    async def _shutdown(self) -> None:
        for subscription in self.pipeline_subscriptions:
            await self._step(f"unsubscribing {subscription.name}", subscription.unsubscribe())

        if self.file_subscription is not None:
            await self._step("closing the file watcher", self.file_subscription.unsubscribe())

        await self._step("ending the build worker pool", self.worker_pool.end())

        if self.lint_trigger is not None:
            self.lint_trigger.cancel()

        if self.dispatcher is not None and not self.dispatcher.done():
            self.dispatcher.cancel()
            await asyncio.gather(self.dispatcher, return_exceptions=True)

        await self._step("stopping the reload proxy", self.proxy.exit())

        logger.info("🚪 Exiting. Bye!")
