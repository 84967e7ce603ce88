"""
Asset pipelines: watch-mode builds through a shared worker pool.
"""

from .adapter import PipelineWatcher
from .subscription import Subscription
from .worker_pool import BuildWorkerPool

__all__ = [
    "BuildWorkerPool",
    "PipelineWatcher",
    "Subscription",
]
