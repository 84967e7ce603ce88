"""
Shared build worker pool.

Both asset pipelines run their bundler through one pool, which bounds how
many one-shot bundler processes run at once and owns the termination of
every bundler process, including long-running HMR watchers, on shutdown.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..system import CommandResult, run_command, spawn_command, terminate_process_tree

logger = logging.getLogger(__name__)


class BuildWorkerPool:
    """
    Bounded runner for bundler subprocesses.

    The pool must only be ended after every pipeline using it has
    unsubscribed; ``end()`` waits for in-flight builds and terminates any
    that outlive ``shutdown_timeout``.
    """

    def __init__(self, max_workers: int = 2, shutdown_timeout: float = 10.0):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self.shutdown_timeout = shutdown_timeout
        self.is_shutdown = False
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._active: Dict[int, asyncio.subprocess.Process] = {}
        # Long-running watchers; not bounded by the semaphore.
        self._persistent: Dict[int, asyncio.subprocess.Process] = {}

        self.stats = {
            "builds_submitted": 0,
            "builds_completed": 0,
            "builds_failed": 0,
            "builds_terminated": 0,
            "watchers_started": 0,
        }

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def persistent_count(self) -> int:
        return len(self._persistent)

    def _get_semaphore(self) -> asyncio.Semaphore:
        # Created lazily so the pool can be constructed outside the loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_workers)
        return self._semaphore

    def _check_open(self) -> None:
        if self.is_shutdown:
            raise RuntimeError("Build worker pool is shut down")

    async def run(self, command: Sequence[str], cwd: Path) -> CommandResult:
        """
        Run one bundler invocation once a worker slot is free.

        The result's ``elapsed_ms`` covers the process only, not the wait
        for a slot. A cancelled build has its process tree terminated.

        Raises:
            RuntimeError: If the pool has been ended
            FileNotFoundError: If the bundler executable does not exist
        """
        self._check_open()

        async with self._get_semaphore():
            self._check_open()

            self.stats["builds_submitted"] += 1
            pid = None

            def track(process: asyncio.subprocess.Process) -> None:
                nonlocal pid
                pid = process.pid
                self._active[pid] = process

            try:
                result = await run_command(command, cwd, on_start=track)
            except asyncio.CancelledError:
                if pid is not None:
                    self.stats["builds_terminated"] += 1
                raise
            finally:
                if pid is not None:
                    self._active.pop(pid, None)

            if result.returncode == 0:
                self.stats["builds_completed"] += 1
            else:
                self.stats["builds_failed"] += 1
            return result

    async def start_watcher(self, command: Sequence[str], cwd: Path) -> asyncio.subprocess.Process:
        """
        Start a long-running bundler process (such as an HMR watcher).

        The process is tracked until ``stop_watcher()`` or ``end()``.

        Raises:
            RuntimeError: If the pool has been ended
            FileNotFoundError: If the bundler executable does not exist
        """
        self._check_open()
        process = await spawn_command(command, cwd)
        self._persistent[process.pid] = process
        self.stats["watchers_started"] += 1
        return process

    async def stop_watcher(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a process started by ``start_watcher()``."""
        try:
            if process.returncode is None:
                await asyncio.to_thread(terminate_process_tree, process.pid, "bundler watcher")
        finally:
            self._persistent.pop(process.pid, None)

    async def end(self) -> None:
        """Stop accepting builds and wind down the ones still running."""
        if self.is_shutdown:
            return
        self.is_shutdown = True

        for process in list(self._persistent.values()):
            await self.stop_watcher(process)

        running = list(self._active.values())
        if running:
            logger.info(f"Waiting for {len(running)} running build(s) to finish...")
            waiters = [asyncio.create_task(p.wait()) for p in running]
            _, pending = await asyncio.wait(waiters, timeout=self.shutdown_timeout)
            for waiter in pending:
                waiter.cancel()

            for process in running:
                if process.returncode is None:
                    self.stats["builds_terminated"] += 1
                    await asyncio.to_thread(terminate_process_tree, process.pid, "bundler")

        logger.debug(f"Build worker pool ended: {self.stats}")
