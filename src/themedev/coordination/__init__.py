"""
Build sequencing: the first-success coordinator and the debounced runner.
"""

from .coordinator import (
    BuildCoordinator,
    CoordinatorPhase,
    CoordinatorState,
    ReloadProxy,
    ReloadTarget,
)
from .debounce import DebouncedTask

__all__ = [
    "BuildCoordinator",
    "CoordinatorPhase",
    "CoordinatorState",
    "DebouncedTask",
    "ReloadProxy",
    "ReloadTarget",
]
