"""
Event and message types exchanged between watchers and the coordinator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple, Union


class PipelineId(Enum):
    """The two asset pipelines the coordinator sequences."""

    STYLE = "style"
    SCRIPT = "script"

    def other(self) -> "PipelineId":
        return PipelineId.SCRIPT if self is PipelineId.STYLE else PipelineId.STYLE


@dataclass(frozen=True)
class BuildSuccess:
    """A build that completed and wrote its bundles."""

    pipeline: PipelineId
    bundle_count: int
    elapsed_ms: int

    def __post_init__(self):
        if self.bundle_count < 0 or self.elapsed_ms < 0:
            raise ValueError("bundle_count and elapsed_ms must be >= 0")


@dataclass(frozen=True)
class BuildFailure:
    """A build that failed; diagnostics are kept in emission order."""

    pipeline: PipelineId
    diagnostics: Tuple[Any, ...] = ()


BuildEvent = Union[BuildSuccess, BuildFailure]


@dataclass(frozen=True)
class FileChange:
    """A change to a non-bundled file, such as a PHP template."""

    path: str
