"""
Pipeline watch adapter.

Runs one asset pipeline in watch mode: an initial build, then one build per
batch of source changes. Every build is normalized into a BuildSuccess or
BuildFailure; failures are reported to the operator and successes are
handed to the caller's callback.

With hot module replacement enabled, a pipeline that defines an HMR
command runs the bundler's own long-lived watcher instead, and its
status output is turned into the same build events.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from watchfiles import DefaultFilter, awatch

from ..models.config import PipelineConfig, TlsConfig
from ..models.events import BuildEvent, BuildFailure, BuildSuccess
from ..system import expand_command
from ..validation import PipelineError
from .subscription import Subscription
from .worker_pool import BuildWorkerPool

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[BuildSuccess], None]

# Files in the dist directory that are not bundles.
NON_BUNDLE_SUFFIXES = (".map",)

# Status lines printed by the bundler watcher ("✨ Built in 120ms",
# "✨ Built in 1.52s", "🚨 Build failed.").
BUILT_PATTERN = re.compile(r"Built in (\d+(?:\.\d+)?)\s*(ms|s)\b")
FAILED_MARKER = "Build failed"
ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

# Quiet period after which collected failure diagnostics are reported.
FAILURE_FLUSH_DELAY = 0.25


def parse_built_ms(line: str) -> Optional[int]:
    """
    Return the build time in milliseconds from a "Built in" status line.

    Examples:
        >>> parse_built_ms("✨ Built in 1.5s")
        1500
        >>> parse_built_ms("Bundling...") is None
        True
    """
    match = BUILT_PATTERN.search(line)
    if match is None:
        return None
    value = float(match.group(1))
    return int(round(value if match.group(2) == "ms" else value * 1000))


class PipelineWatcher:
    """
    Watch-and-build driver for a single pipeline.

    The bundler command may use these placeholder tokens:

    - ``{entries}``: every entry point, as separate arguments
    - ``{dist_dir}``: the output directory
    - ``{tls_key}`` / ``{tls_cert}``: the certificate pair

    When ``hmr_enabled`` is set and the pipeline defines ``hmr_command``,
    that command is started once through the pool and kept running until
    the subscription is released.
    """

    def __init__(
        self,
        pipeline: PipelineConfig,
        theme_dir: Path,
        pool: BuildWorkerPool,
        tls: TlsConfig,
        hmr_enabled: bool = False,
        stop_timeout: float = 5.0,
    ):
        self.pipeline = pipeline
        self.theme_dir = theme_dir
        self.pool = pool
        self.tls = tls
        self.hmr_enabled = hmr_enabled and pipeline.supports_hmr
        self.stop_timeout = stop_timeout

    @property
    def name(self) -> str:
        return f"{self.pipeline.label} pipeline"

    @property
    def dist_dir(self) -> Path:
        return self.theme_dir / self.pipeline.dist_dir

    def _expand(self, template: Sequence[str]) -> List[str]:
        return expand_command(template, {
            "entries": self.pipeline.entries,
            "dist_dir": [str(self.pipeline.dist_dir)],
            "tls_key": [str(self.tls.key)],
            "tls_cert": [str(self.tls.cert)],
        })

    def build_command(self) -> List[str]:
        return self._expand(self.pipeline.command)

    def hmr_command(self) -> List[str]:
        return self._expand(self.pipeline.hmr_command)

    def _snapshot_dist(self) -> Dict[Path, int]:
        if not self.dist_dir.is_dir():
            return {}
        snapshot = {}
        for path in self.dist_dir.rglob("*"):
            if path.is_file() and path.suffix not in NON_BUNDLE_SUFFIXES:
                try:
                    snapshot[path] = path.stat().st_mtime_ns
                except FileNotFoundError:
                    continue
        return snapshot

    @staticmethod
    def _count_written(before: Dict[Path, int], after: Dict[Path, int]) -> int:
        return sum(1 for path, mtime in after.items() if before.get(path) != mtime)

    def _pipeline_error(self, message: str) -> PipelineError:
        return PipelineError(message, pipeline=self.pipeline.pipeline_id.value)

    async def build(self) -> BuildEvent:
        """
        Run the bundler once and normalize the outcome.

        Raises:
            PipelineError: If the bundler could not be invoked at all
        """
        before = self._snapshot_dist()
        try:
            result = await self.pool.run(self.build_command(), self.theme_dir)
        except (OSError, RuntimeError) as e:
            raise self._pipeline_error(f"{self.name} could not run the bundler: {e}") from e

        if result.returncode != 0:
            return BuildFailure(self.pipeline.pipeline_id, tuple(result.output_lines))

        after = self._snapshot_dist()
        return BuildSuccess(self.pipeline.pipeline_id, self._count_written(before, after), result.elapsed_ms)

    def handle_event(self, event: BuildEvent, on_success: SuccessCallback) -> None:
        """Report a build event and forward it to the callback on success."""
        if isinstance(event, BuildSuccess):
            plural = "" if event.bundle_count == 1 else "s"
            logger.info(
                f"🎉 Built {event.bundle_count} {self.pipeline.label} bundle{plural} "
                f"in {event.elapsed_ms}ms!"
            )
            on_success(event)
        else:
            details = "\n".join(str(d) for d in event.diagnostics)
            logger.error(f"❗ {self.pipeline.label} build failed" + (f"\n{details}" if details else ""))

    def _watch_paths(self) -> List[Path]:
        paths = []
        for entry in self.pipeline.watch:
            path = self.theme_dir / entry
            if path.exists():
                paths.append(path)
            else:
                logger.warning(f"{self.name}: watch path {path} does not exist, skipping")
        if not paths:
            raise self._pipeline_error(f"{self.name} has no existing paths to watch")
        return paths

    async def _watch_loop(self, on_success: SuccessCallback, stop_event: asyncio.Event) -> None:
        paths = self._watch_paths()
        watch_filter = DefaultFilter(ignore_paths=[self.dist_dir])

        self.handle_event(await self.build(), on_success)
        async for changes in awatch(*paths, watch_filter=watch_filter, stop_event=stop_event):
            logger.debug(f"{self.name}: {len(changes)} change(s) detected")
            self.handle_event(await self.build(), on_success)

    async def _read_watcher_output(self, stream: asyncio.StreamReader, on_success: SuccessCallback,
                                   before: Dict[Path, int]) -> None:
        """Turn the bundler watcher's status lines into build events until EOF."""
        failure: Optional[List[str]] = None

        def flush_failure() -> None:
            nonlocal failure
            if failure is not None:
                self.handle_event(BuildFailure(self.pipeline.pipeline_id, tuple(failure)), on_success)
                failure = None

        while True:
            timeout = FAILURE_FLUSH_DELAY if failure is not None else None
            try:
                raw = await asyncio.wait_for(stream.readline(), timeout)
            except asyncio.TimeoutError:
                flush_failure()
                continue
            if not raw:
                break

            line = ANSI_ESCAPE.sub("", raw.decode("utf-8", errors="replace")).strip()
            if not line:
                continue

            elapsed_ms = parse_built_ms(line)
            if elapsed_ms is not None:
                flush_failure()
                after = self._snapshot_dist()
                count = self._count_written(before, after)
                before = after
                self.handle_event(BuildSuccess(self.pipeline.pipeline_id, count, elapsed_ms), on_success)
            elif FAILED_MARKER in line:
                flush_failure()
                failure = []
            elif failure is not None:
                failure.append(line)
            else:
                logger.debug(f"{self.name}: {line}")

        flush_failure()

    async def _hmr_loop(self, on_success: SuccessCallback, stop_event: asyncio.Event) -> None:
        before = self._snapshot_dist()
        try:
            process = await self.pool.start_watcher(self.hmr_command(), self.theme_dir)
        except (OSError, RuntimeError) as e:
            raise self._pipeline_error(f"{self.name} could not start the HMR watcher: {e}") from e
        logger.debug(f"{self.name} HMR watcher running as PID {process.pid}")

        async def stop_when_asked() -> None:
            await stop_event.wait()
            await self.pool.stop_watcher(process)

        stopper = asyncio.create_task(stop_when_asked())
        try:
            await self._read_watcher_output(process.stdout, on_success, before)
            returncode = await process.wait()
        finally:
            stopper.cancel()
            await self.pool.stop_watcher(process)

        if not stop_event.is_set():
            raise self._pipeline_error(f"{self.name} HMR watcher exited with code {returncode}")

    async def watch(self, on_success: SuccessCallback) -> Subscription:
        """
        Start watching in the background.

        Returns:
            The subscription to release on shutdown
        """
        stop_event = asyncio.Event()
        loop = self._hmr_loop if self.hmr_enabled else self._watch_loop
        task = asyncio.create_task(
            loop(on_success, stop_event),
            name=f"watch-{self.pipeline.pipeline_id.value}",
        )
        if self.hmr_enabled:
            logger.debug(f"{self.name} watching through the bundler's HMR watcher")
        else:
            logger.debug(f"{self.name} watching {', '.join(self.pipeline.watch)}")
        return Subscription(self.name, task, stop_event, self.stop_timeout)
