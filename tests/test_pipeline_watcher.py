"""
Tests for the pipeline watch adapter.

The bundler is replaced by a fake worker pool that writes bundles into the
dist directory the way parcel would.
"""

import asyncio
import logging
import os
import sys
import textwrap
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import psutil
from watchfiles import Change

from conftest import batches_awatch
from themedev.models import BuildFailure, BuildSuccess, PipelineId
from themedev.pipelines import BuildWorkerPool, PipelineWatcher
from themedev.pipelines.adapter import parse_built_ms
from themedev.system import CommandResult, is_process_alive
from themedev.validation import PipelineError


class FakeBundlerPool:
    """Worker pool stand-in that 'builds' by writing files into dist."""

    def __init__(self, dist_dir: Path, outputs=("global.css",), returncode=0, stderr="", elapsed_ms=37):
        self.dist_dir = dist_dir
        self.outputs = list(outputs)
        self.returncode = returncode
        self.stderr = stderr
        self.elapsed_ms = elapsed_ms
        self.commands = []

    async def run(self, command, cwd):
        self.commands.append(list(command))
        if self.returncode == 0:
            self.dist_dir.mkdir(parents=True, exist_ok=True)
            for name in self.outputs:
                target = self.dist_dir / name
                # Force a visible mtime change between consecutive builds
                stamp = target.stat().st_mtime_ns + 1_000_000 if target.exists() else None
                target.write_text(f"/* {len(self.commands)} */")
                if stamp is not None:
                    os.utime(target, ns=(stamp, stamp))
        return CommandResult(self.returncode, "", self.stderr, elapsed_ms=self.elapsed_ms)


@pytest.fixture
def style_pipeline(app_config):
    return app_config.pipeline(PipelineId.STYLE)


@pytest.fixture
def script_pipeline(app_config):
    return app_config.pipeline(PipelineId.SCRIPT)


def make_watcher(app_config, pipeline, pool, hmr_enabled=False, stop_timeout=5.0):
    return PipelineWatcher(pipeline, app_config.server.theme_dir, pool, app_config.tls,
                           hmr_enabled=hmr_enabled, stop_timeout=stop_timeout)


class TestBuildCommand:

    def test_placeholders_expanded(self, app_config, style_pipeline):
        watcher = make_watcher(app_config, style_pipeline, Mock())

        assert watcher.build_command() == [
            "npx", "parcel", "build", "sass/global.scss", "--dist-dir", "dist/sass",
        ]

    def test_hmr_command_expanded(self, app_config, script_pipeline):
        watcher = make_watcher(app_config, script_pipeline, Mock(), hmr_enabled=True)

        assert watcher.hmr_command() == [
            "npx", "parcel", "watch", "js/front-end.js", "--dist-dir", "dist/js",
            "--hmr-port", "3005",
            "--cert", "/var/www/certs/localhost.pem",
            "--key", "/var/www/certs/localhost-key.pem",
        ]

    def test_one_shot_build_never_carries_hmr_options(self, app_config, script_pipeline):
        watcher = make_watcher(app_config, script_pipeline, Mock(), hmr_enabled=True)

        assert watcher.build_command()[:3] == ["npx", "parcel", "build"]
        assert "--hmr-port" not in watcher.build_command()

    def test_hmr_needs_pipeline_support(self, app_config, style_pipeline):
        watcher = make_watcher(app_config, style_pipeline, Mock(), hmr_enabled=True)

        assert watcher.hmr_enabled is False


class TestBuild:

    @pytest.mark.asyncio
    async def test_success_counts_written_bundles(self, app_config, style_pipeline):
        pool = FakeBundlerPool(app_config.server.theme_dir / "dist/sass",
                               outputs=["global.css", "global.css.map", "editor.css"])
        watcher = make_watcher(app_config, style_pipeline, pool)

        event = await watcher.build()

        assert isinstance(event, BuildSuccess)
        assert event.pipeline is PipelineId.STYLE
        assert event.bundle_count == 2
        assert event.elapsed_ms == 37

    @pytest.mark.asyncio
    async def test_rebuild_counts_rewritten_bundles(self, app_config, style_pipeline):
        pool = FakeBundlerPool(app_config.server.theme_dir / "dist/sass")
        watcher = make_watcher(app_config, style_pipeline, pool)

        await watcher.build()
        event = await watcher.build()

        assert event.bundle_count == 1

    @pytest.mark.asyncio
    async def test_failure_carries_diagnostics(self, app_config, style_pipeline):
        pool = FakeBundlerPool(app_config.server.theme_dir / "dist/sass", returncode=1,
                               stderr="@parcel/transformer-sass: Undefined variable\n\n  line 3\n")
        watcher = make_watcher(app_config, style_pipeline, pool)

        event = await watcher.build()

        assert isinstance(event, BuildFailure)
        assert event.diagnostics == ("@parcel/transformer-sass: Undefined variable", "  line 3")

    @pytest.mark.asyncio
    async def test_missing_bundler_raises_pipeline_error(self, app_config, style_pipeline):
        pool = Mock()
        pool.run = Mock(side_effect=FileNotFoundError("npx"))
        watcher = make_watcher(app_config, style_pipeline, pool)

        with pytest.raises(PipelineError) as exc_info:
            await watcher.build()

        assert exc_info.value.pipeline == "style"


class TestHandleEvent:

    def test_success_logged_and_forwarded(self, app_config, style_pipeline, caplog):
        watcher = make_watcher(app_config, style_pipeline, Mock())
        callback = Mock()
        event = BuildSuccess(PipelineId.STYLE, 2, 120)

        with caplog.at_level(logging.INFO):
            watcher.handle_event(event, callback)

        callback.assert_called_once_with(event)
        assert "Built 2 Sass bundles in 120ms!" in caplog.text

    def test_single_bundle_message(self, app_config, script_pipeline, caplog):
        watcher = make_watcher(app_config, script_pipeline, Mock())

        with caplog.at_level(logging.INFO):
            watcher.handle_event(BuildSuccess(PipelineId.SCRIPT, 1, 80), Mock())

        assert "Built 1 JavaScript bundle in 80ms!" in caplog.text

    def test_failure_logged_not_forwarded(self, app_config, style_pipeline, caplog):
        watcher = make_watcher(app_config, style_pipeline, Mock())
        callback = Mock()

        with caplog.at_level(logging.ERROR):
            watcher.handle_event(BuildFailure(PipelineId.STYLE, ("Undefined variable",)), callback)

        callback.assert_not_called()
        assert "Sass build failed" in caplog.text
        assert "Undefined variable" in caplog.text


class TestWatch:

    @pytest.mark.asyncio
    async def test_initial_build_then_one_build_per_batch(self, app_config, style_pipeline):
        pool = FakeBundlerPool(app_config.server.theme_dir / "dist/sass")
        watcher = make_watcher(app_config, style_pipeline, pool)
        scss = str(app_config.server.theme_dir / "sass" / "global.scss")
        successes = []

        fake_awatch = batches_awatch([
            {(Change.modified, scss)},
            {(Change.modified, scss), (Change.added, scss)},
        ])
        with patch("themedev.pipelines.adapter.awatch", fake_awatch):
            subscription = await watcher.watch(successes.append)
            await asyncio.wait_for(subscription.task, timeout=2)

        assert len(pool.commands) == 3
        assert len(successes) == 3
        assert all(event.pipeline is PipelineId.STYLE for event in successes)

    @pytest.mark.asyncio
    async def test_failed_builds_are_not_forwarded(self, app_config, style_pipeline):
        pool = FakeBundlerPool(app_config.server.theme_dir / "dist/sass", returncode=1)
        watcher = make_watcher(app_config, style_pipeline, pool)
        successes = []

        with patch("themedev.pipelines.adapter.awatch", batches_awatch([{(Change.modified, "x")}])):
            subscription = await watcher.watch(successes.append)
            await asyncio.wait_for(subscription.task, timeout=2)

        assert len(pool.commands) == 2
        assert successes == []

    @pytest.mark.asyncio
    async def test_missing_watch_paths_fail_the_subscription(self, app_config, style_pipeline):
        style_pipeline.watch = ["does-not-exist"]
        watcher = make_watcher(app_config, style_pipeline, Mock())

        subscription = await watcher.watch(Mock())
        await asyncio.gather(subscription.task, return_exceptions=True)

        assert isinstance(subscription.exception(), PipelineError)

    @pytest.mark.asyncio
    async def test_build_interrupted_at_shutdown_leaves_no_bundler(self, app_config, style_pipeline):
        style_pipeline.command = [sys.executable, "-c", "import time; time.sleep(30)"]
        pool = BuildWorkerPool()
        watcher = make_watcher(app_config, style_pipeline, pool, stop_timeout=0.2)

        subscription = await watcher.watch(Mock())
        while pool.active_count == 0:
            await asyncio.sleep(0.01)
        bundler = psutil.Process(next(iter(pool._active)))

        await subscription.unsubscribe()
        await pool.end()

        assert not is_process_alive(bundler)
        assert pool.stats["builds_terminated"] == 1
        assert pool.active_count == 0


# Stands in for `parcel watch`: builds once, fails once, rebuilds, then idles.
FAKE_HMR_WATCHER = textwrap.dedent("""
    import os, time
    os.makedirs("dist/js", exist_ok=True)
    open("dist/js/front-end.js", "w").write("1")
    print("Building...", flush=True)
    print("\\x1b[32mBuilt in 1.2s\\x1b[0m", flush=True)
    print("Build failed.", flush=True)
    print("@parcel/core: Failed to resolve 'missing'", flush=True)
    time.sleep(0.5)
    open("dist/js/front-end.js", "w").write("2")
    os.utime("dist/js/front-end.js", (time.time() + 5, time.time() + 5))
    print("Built in 85ms", flush=True)
    time.sleep(30)
""")


async def wait_until(predicate, timeout=10):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.05)
    await asyncio.wait_for(poll(), timeout)


class TestHmrWatch:

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("✨ Built in 120ms", 120),
            ("✨ Built in 1.52s", 1520),
            ("🚨 Build failed.", None),
            ("Bundling...", None),
        ],
    )
    def test_parse_built_ms(self, line, expected):
        assert parse_built_ms(line) == expected

    @pytest.mark.asyncio
    async def test_persistent_watcher_output_becomes_build_events(self, app_config, script_pipeline, caplog):
        script_pipeline.hmr_command = [sys.executable, "-c", FAKE_HMR_WATCHER]
        pool = BuildWorkerPool()
        watcher = make_watcher(app_config, script_pipeline, pool, hmr_enabled=True)
        successes = []

        with caplog.at_level(logging.ERROR):
            subscription = await watcher.watch(successes.append)
            await wait_until(lambda: len(successes) == 2)

        assert [event.elapsed_ms for event in successes] == [1200, 85]
        assert [event.bundle_count for event in successes] == [1, 1]
        assert "JavaScript build failed" in caplog.text
        assert "Failed to resolve 'missing'" in caplog.text

        # The watcher keeps running between builds so its HMR server stays up
        assert subscription.active
        assert pool.persistent_count == 1
        process = next(iter(pool._persistent.values()))

        await subscription.unsubscribe()

        assert process.returncode is not None
        assert pool.persistent_count == 0
        assert subscription.exception() is None

    @pytest.mark.asyncio
    async def test_watcher_exit_fails_the_subscription(self, app_config, script_pipeline):
        script_pipeline.hmr_command = [sys.executable, "-c", "print('Built in 10ms'); raise SystemExit(1)"]
        pool = BuildWorkerPool()
        watcher = make_watcher(app_config, script_pipeline, pool, hmr_enabled=True)
        successes = []

        subscription = await watcher.watch(successes.append)
        await asyncio.gather(subscription.task, return_exceptions=True)

        assert len(successes) == 1
        assert isinstance(subscription.exception(), PipelineError)
        assert "exited with code 1" in str(subscription.exception())
        assert pool.persistent_count == 0

    @pytest.mark.asyncio
    async def test_pool_end_stops_watcher(self, app_config, script_pipeline):
        script_pipeline.hmr_command = [sys.executable, "-c", "import time; time.sleep(30)"]
        pool = BuildWorkerPool()
        watcher = make_watcher(app_config, script_pipeline, pool, hmr_enabled=True)

        subscription = await watcher.watch(Mock())
        await wait_until(lambda: pool.persistent_count == 1)
        process = next(iter(pool._persistent.values()))

        await pool.end()
        await asyncio.gather(subscription.task, return_exceptions=True)

        assert process.returncode is not None
        assert isinstance(subscription.exception(), PipelineError)
