"""
Process tree termination.

Bundler and proxy commands are usually launched through `npx`, which spawns
node children of its own. Stopping them cleanly means signalling the whole
tree with escalating force.
"""

import logging
import os
import signal
from typing import List

import psutil

logger = logging.getLogger(__name__)


class TerminationTimeouts:
    """Seconds to wait after each termination phase."""

    GRACEFUL = 3.0
    INTERRUPT = 2.0
    FORCE = 2.0


_PHASES = (
    ("graceful", signal.SIGTERM, TerminationTimeouts.GRACEFUL),
    ("interrupt", signal.SIGINT, TerminationTimeouts.INTERRUPT),
    ("force_kill", signal.SIGKILL, TerminationTimeouts.FORCE),
)


def is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _living_tree(parent: psutil.Process) -> List[psutil.Process]:
    processes = [parent]
    try:
        processes.extend(parent.children(recursive=True))
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        # Tree changed while enumerating
        pass
    return [p for p in processes if is_process_alive(p)]


def terminate_process_tree(pid: int, name: str) -> None:
    """
    Terminate a process and all its children.

    Sends SIGTERM, then SIGINT, then SIGKILL to whatever is still alive,
    waiting between phases. Blocking; call it through asyncio.to_thread
    from the event loop.
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
        return

    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug(f"Process {name} (PID: {pid}) already terminated")
        return

    for phase_name, signum, timeout in _PHASES:
        processes = _living_tree(parent)
        if not processes:
            break

        logger.debug(f"Phase {phase_name}: signalling {len(processes)} process(es) of {name}")
        for process in processes:
            try:
                process.send_signal(signum)
            except psutil.NoSuchProcess:
                continue
            except psutil.AccessDenied:
                logger.warning(f"Access denied sending {signum.name} to PID {process.pid}")

        _, still_alive = psutil.wait_procs(processes, timeout=timeout)
        still_alive = [p for p in still_alive if is_process_alive(p)]
        if not still_alive:
            logger.debug(f"{name} terminated during phase {phase_name}")
            break
    else:
        logger.error(f"Failed to terminate all processes of {name} (PID: {pid})")

    _cleanup_process_group(pid, name)


def _cleanup_process_group(pid: int, name: str) -> None:
    """Kill the process group led by pid, if it still exists."""
    try:
        os.killpg(pid, signal.SIGKILL)
        logger.debug(f"Sent SIGKILL to process group {pid} for {name}")
    except ProcessLookupError:
        pass
    except PermissionError:
        logger.debug(f"No permission to kill process group {pid}")
