"""
System interaction utilities: running external tools and stopping them.
"""

from .commands import (
    CommandResult,
    check_command_available,
    expand_command,
    run_command,
    spawn_command,
)
from .processes import is_process_alive, terminate_process_tree

__all__ = [
    "CommandResult",
    "check_command_available",
    "expand_command",
    "is_process_alive",
    "run_command",
    "spawn_command",
    "terminate_process_tree",
]
