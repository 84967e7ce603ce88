"""
Command execution utilities.

This module provides helpers for running external tools (bundler, linter)
as subprocesses from the event loop and for checking that they exist.
"""

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .processes import terminate_process_tree

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str
    # Wall time from spawn to exit.
    elapsed_ms: int = 0

    @property
    def output_lines(self) -> List[str]:
        """Non-empty lines of stdout followed by stderr."""
        lines = self.stdout.splitlines() + self.stderr.splitlines()
        return [line for line in lines if line.strip()]


def expand_command(template: Sequence[str], values: Mapping[str, Sequence[str]]) -> List[str]:
    """
    Expand ``{name}`` placeholder tokens in a command template.

    A token that is exactly a placeholder is replaced by all of the values
    for that name, so ``{entries}`` can expand to several arguments.

    Examples:
        >>> expand_command(["parcel", "build", "{entries}"], {"entries": ["a.js", "b.js"]})
        ['parcel', 'build', 'a.js', 'b.js']
    """
    command: List[str] = []
    for token in template:
        if token.startswith("{") and token.endswith("}") and token[1:-1] in values:
            command.extend(str(v) for v in values[token[1:-1]])
        else:
            command.append(token)
    return command


async def run_command(
    command: Sequence[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    on_start: Optional[Callable[[asyncio.subprocess.Process], None]] = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    The child is started in its own session so its whole process tree can
    be terminated on shutdown.

    Args:
        command: Argument tokens, executable first.
        cwd: Working directory for the command.
        env: Optional environment for the child.
        on_start: Called with the process object once it has been spawned.

    Returns:
        The captured CommandResult.

    Raises:
        FileNotFoundError: If the executable does not exist.
        asyncio.CancelledError: If cancelled; the process tree is
            terminated before the cancellation propagates.
    """
    logger.debug(f"Executing command: '{' '.join(command)}' in '{cwd}'")
    started = time.monotonic()
    process = await asyncio.create_subprocess_exec(
        *command,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    if on_start is not None:
        on_start(process)

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            logger.debug(f"Cancelled while running, terminating PID {process.pid}")
            await asyncio.to_thread(terminate_process_tree, process.pid, command[0])
        raise

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )


async def spawn_command(
    command: Sequence[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
) -> asyncio.subprocess.Process:
    """Start a long-running command with stderr merged into stdout.

    The caller owns the process and must stop it with
    terminate_process_tree().

    Raises:
        FileNotFoundError: If the executable does not exist.
    """
    logger.debug(f"Spawning command: '{' '.join(command)}' in '{cwd}'")
    return await asyncio.create_subprocess_exec(
        *command,
        cwd=cwd,
        env=env,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        start_new_session=True,
    )


def check_command_available(command: Sequence[str]) -> bool:
    """Check whether the executable of a command can be found on PATH."""
    return bool(command) and shutil.which(command[0]) is not None
