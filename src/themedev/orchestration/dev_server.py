"""
Dev server wiring.

Builds the pipelines, coordinator, lint trigger, template watcher and proxy
from the configuration, runs them until a shutdown is requested or
something fatal happens, and then tears everything down.
"""

import asyncio
import logging
from typing import List, Optional

from ..coordination import BuildCoordinator, CoordinatorState, ReloadTarget
from ..lint import LintOnBuildTrigger, Stylelint
from ..models.config import AppConfig
from ..models.events import PipelineId
from ..pipelines import BuildWorkerPool, PipelineWatcher
from ..proxy import BrowserSyncProxy
from ..system import check_command_available
from ..validation import ErrorSeverity, handle_error
from ..watchers import FileChangeWatcher
from .lifecycle import ShutdownController
from .signal_handler import SignalHandler

logger = logging.getLogger(__name__)


class DevServer:
    """
    Main orchestrator for a development session.

    Collaborators can be injected for testing; by default they are built
    from ``config``.
    """

    def __init__(
        self,
        config: AppConfig,
        hmr_enabled: bool = False,
        proxy=None,
        linter: Optional[Stylelint] = None,
    ):
        self.config = config
        self.hmr_enabled = hmr_enabled
        theme_dir = config.server.theme_dir

        self.shutdown_requested = asyncio.Event()
        self.pool = BuildWorkerPool(
            max_workers=config.bundler.max_workers,
            shutdown_timeout=config.server.shutdown_timeout,
        )
        self.proxy = proxy or BrowserSyncProxy(config.proxy, config.tls, theme_dir)
        self.state = CoordinatorState()
        pipelines = [config.pipeline(pipeline_id) for pipeline_id in PipelineId]

        # Executables checked at startup; injected collaborators are skipped.
        self.tool_commands: List[List[str]] = [] if proxy else [config.proxy.command]
        if config.lint.enabled and linter is None:
            self.tool_commands.append(config.lint.command)

        self.lint_trigger: Optional[LintOnBuildTrigger] = None
        if config.lint.enabled:
            self.lint_trigger = LintOnBuildTrigger(
                linter or Stylelint(config.lint.command, theme_dir),
                files=config.lint.files,
                quiet_period=config.lint.quiet_period_ms / 1000,
                readiness=self.state.proxy_ready,
                formatter=config.lint.formatter,
            )

        self.coordinator = BuildCoordinator(
            self.proxy,
            reload_targets={
                p.pipeline_id: ReloadTarget.for_pipeline(p, hmr_enabled) for p in pipelines
            },
            on_style_success=self.lint_trigger.notify if self.lint_trigger else None,
            state=self.state,
        )
        self.watchers: List[PipelineWatcher] = [
            PipelineWatcher(p, theme_dir, self.pool, config.tls, hmr_enabled,
                            stop_timeout=config.server.shutdown_timeout)
            for p in pipelines
        ]
        self.file_watcher = FileChangeWatcher(theme_dir, config.watch.patterns, config.watch.ignore)
        self.lifecycle = ShutdownController(self.pool, self.proxy, self.lint_trigger)
        self.signal_handler = SignalHandler(self.shutdown_requested)

    def missing_tools(self) -> List[str]:
        """Executables of configured commands that cannot be found on PATH."""
        commands = list(self.tool_commands)
        for watcher in self.watchers:
            commands.append(watcher.hmr_command() if watcher.hmr_enabled else watcher.build_command())

        missing = []
        for command in commands:
            if not check_command_available(command) and command[0] not in missing:
                missing.append(command[0])
        return missing

    async def start(self) -> None:
        """Start the dispatcher and every watcher."""
        logger.info(f"🚀 Starting {self.config.server.name} Development Server")
        if self.hmr_enabled:
            logger.info("🔥 Hot Module Replacement enabled")
        for tool in self.missing_tools():
            logger.warning(f"⚠️  '{tool}' was not found on PATH; commands using it will fail")
        logger.info("📦 Bundling assets and watching...")

        self.lifecycle.dispatcher = asyncio.create_task(self.coordinator.run(), name="dispatcher")
        for watcher in self.watchers:
            subscription = await watcher.watch(self.coordinator.submit)
            self.lifecycle.pipeline_subscriptions.append(subscription)

        self.lifecycle.file_subscription = await self.file_watcher.watch(self.coordinator.submit)

    async def wait_for_exit(self) -> None:
        """
        Block until shutdown is requested.

        Raises:
            The error of the dispatcher or a watcher, if one of them fails first
        """
        watched = [self.lifecycle.dispatcher] + [
            s.task for s in self.lifecycle.pipeline_subscriptions
        ]
        if self.lifecycle.file_subscription is not None:
            watched.append(self.lifecycle.file_subscription.task)

        waiter = asyncio.create_task(self.shutdown_requested.wait())
        try:
            done, _ = await asyncio.wait([waiter, *watched], return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        for task in watched:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def run(self) -> int:
        """
        Run the session end to end.

        Returns:
            Process exit code: 0 after a requested shutdown, 1 after a fatal error
        """
        self.signal_handler.setup_signal_handlers()
        exit_code = 0
        try:
            await self.start()
            await self.wait_for_exit()
        except Exception as e:
            handle_error(e, "running the dev server", severity=ErrorSeverity.CRITICAL,
                         reraise=False, logger=logger)
            exit_code = 1
        finally:
            await self.lifecycle.shutdown()
            self.signal_handler.cleanup_signal_handlers()
        return exit_code
