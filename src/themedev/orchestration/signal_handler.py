"""
Signal handling for the dev server.

SIGINT and SIGTERM are routed into an asyncio event so shutdown runs on the
event loop instead of inside a signal handler.
"""

import asyncio
import logging
import signal
from typing import Optional

logger = logging.getLogger(__name__)


class SignalHandler:
    """Installs loop signal handlers that request a graceful shutdown."""

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, shutdown_requested: asyncio.Event):
        self.shutdown_requested = shutdown_requested
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._signal_handlers_set = False

    def setup_signal_handlers(self) -> None:
        """Set up signal handlers on the running loop."""
        self._loop = asyncio.get_running_loop()
        try:
            for signum in self.SIGNALS:
                self._loop.add_signal_handler(signum, self._handle_signal, signum)
            self._signal_handlers_set = True
            logger.debug("Signal handlers set up")
        except (NotImplementedError, RuntimeError) as e:
            logger.warning(f"Failed to set up signal handlers: {e}")

    def cleanup_signal_handlers(self) -> None:
        """Remove the handlers installed by setup_signal_handlers()."""
        if not self._signal_handlers_set or self._loop is None:
            return
        try:
            for signum in self.SIGNALS:
                self._loop.remove_signal_handler(signum)
            logger.debug("Signal handlers removed")
        finally:
            self._signal_handlers_set = False

    def _handle_signal(self, signum: int) -> None:
        if self.shutdown_requested.is_set():
            logger.warning("Shutdown already in progress. Please be patient.")
            return
        logger.info(f"Signal {signal.strsignal(signum)} received. Initiating graceful shutdown...")
        self.shutdown_requested.set()
