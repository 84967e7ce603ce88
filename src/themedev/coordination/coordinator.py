"""
First-success build coordinator.

Sequences the two asset pipelines against the reload proxy: the proxy is
started once, after both pipelines have produced a first successful build,
and every later success is turned into a reload of the proxied page.

Messages (build successes and template changes) arrive on a single-consumer
asyncio queue and are dispatched by type, so all state changes happen on
one thread of control without locking.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Protocol, Union

from ..models.config import PipelineConfig
from ..models.events import BuildSuccess, FileChange, PipelineId
from ..validation import ErrorSeverity, ProxyStartupError, handle_error

logger = logging.getLogger(__name__)

Message = Union[BuildSuccess, FileChange]


class ReloadProxy(Protocol):
    """What the coordinator needs from the reload proxy."""

    @property
    def active(self) -> bool: ...

    async def init(self) -> None: ...

    async def reload(self, path: Optional[str] = None) -> None: ...


class CoordinatorPhase(Enum):
    NOT_STARTED = "not_started"
    WAITING_ON = "waiting_on"
    PROXY_ACTIVE = "proxy_active"


@dataclass
class CoordinatorState:
    """
    Sequencing state owned by one coordinator.

    Transitions only move forward: NOT_STARTED -> WAITING_ON(pipeline)
    -> PROXY_ACTIVE.
    """

    phase: CoordinatorPhase = CoordinatorPhase.NOT_STARTED
    waiting_on: Optional[PipelineId] = None
    proxy_startups: int = 0
    # Set once the proxy is serving; the lint trigger waits on it.
    proxy_ready: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass(frozen=True)
class ReloadTarget:
    """How a pipeline's successful builds are pushed to the browser."""

    mode: str  # "inject", "full" or "none"
    path: Optional[str] = None

    @classmethod
    def for_pipeline(cls, pipeline: PipelineConfig, hmr_enabled: bool) -> "ReloadTarget":
        if hmr_enabled and pipeline.supports_hmr:
            # The bundler's HMR server pushes these changes itself.
            return cls("none")
        if pipeline.reload == "inject":
            return cls("inject", pipeline.reload_path)
        return cls(pipeline.reload)


class BuildCoordinator:
    """
    Decides, for each successful build, whether to start the proxy, reload
    it, or keep waiting for the other pipeline.
    """

    def __init__(
        self,
        proxy: ReloadProxy,
        reload_targets: Dict[PipelineId, ReloadTarget],
        on_style_success: Optional[Callable[[], None]] = None,
        state: Optional[CoordinatorState] = None,
    ):
        self.proxy = proxy
        self.reload_targets = reload_targets
        self.on_style_success = on_style_success
        self.state = state or CoordinatorState()
        self.channel: "asyncio.Queue[Message]" = asyncio.Queue()
        self._handlers: Dict[type, Callable[[Message], Awaitable[None]]] = {
            BuildSuccess: self._handle_build_success,
            FileChange: self._handle_file_change,
        }

    @property
    def proxy_active(self) -> bool:
        return self.proxy.active

    def submit(self, message: Message) -> None:
        """Queue a message; safe to use as a synchronous watcher callback."""
        self.channel.put_nowait(message)

    async def dispatch(self, message: Message) -> None:
        handler = self._handlers.get(type(message))
        if handler is None:
            logger.warning(f"Ignoring unsupported message {message!r}")
            return
        await handler(message)

    async def run(self) -> None:
        """
        Consume the channel forever.

        Raises:
            ProxyStartupError: If the proxy fails to start
        """
        while True:
            message = await self.channel.get()
            try:
                await self.dispatch(message)
            finally:
                self.channel.task_done()

    async def _handle_build_success(self, event: BuildSuccess) -> None:
        state = self.state

        if self.proxy_active:
            await self._reload(event.pipeline)
        elif state.phase is CoordinatorPhase.NOT_STARTED:
            state.phase = CoordinatorPhase.WAITING_ON
            state.waiting_on = event.pipeline.other()
            logger.debug(f"{event.pipeline.value} built first, waiting on {state.waiting_on.value}")
        elif state.phase is CoordinatorPhase.WAITING_ON and state.waiting_on is event.pipeline:
            await self._start_proxy()
        # Otherwise this pipeline has already been counted.

        if event.pipeline is PipelineId.STYLE and self.on_style_success is not None:
            self.on_style_success()

    async def _handle_file_change(self, change: FileChange) -> None:
        logger.info(f"🐘 Detected change in {change.path}. Reloading!")
        if self.proxy_active:
            await self.proxy.reload()
        else:
            logger.debug("Reload proxy not running yet, nothing to reload")

    async def _start_proxy(self) -> None:
        try:
            await self.proxy.init()
        except Exception as e:
            handle_error(e, "starting the reload proxy", severity=ErrorSeverity.CRITICAL,
                         reraise=False, logger=logger)
            if isinstance(e, ProxyStartupError):
                raise
            raise ProxyStartupError(f"Reload proxy failed to start: {e}") from e

        self.state.phase = CoordinatorPhase.PROXY_ACTIVE
        self.state.waiting_on = None
        self.state.proxy_startups += 1
        self.state.proxy_ready.set()

    async def _reload(self, pipeline: PipelineId) -> None:
        target = self.reload_targets.get(pipeline, ReloadTarget("full"))
        if target.mode == "none":
            return
        await self.proxy.reload(target.path if target.mode == "inject" else None)
