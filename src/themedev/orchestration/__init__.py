"""
Orchestration module for the dev server.

Components:
- DevServer: Main orchestrator wiring pipelines, coordinator and proxy
- ShutdownController: Ordered teardown
- SignalHandler: SIGINT/SIGTERM to shutdown request
"""

from .dev_server import DevServer
from .lifecycle import ShutdownController
from .signal_handler import SignalHandler

__all__ = [
    "DevServer",
    "ShutdownController",
    "SignalHandler",
]
