"""
Browser-sync reload proxy.

browser-sync runs as a child process serving the local site behind an HTTPS
proxy. It is configured through a generated JSON config file and told to
reload through its HTTP API.
"""

import asyncio
import json
import logging
import tempfile
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..models.config import ProxyConfig, TlsConfig
from ..system import terminate_process_tree
from ..validation import ProxyStartupError

logger = logging.getLogger(__name__)

RELOAD_ENDPOINT = "/__browser_sync__"
STARTUP_OUTPUT_LINES = 20


class BrowserSyncProxy:
    """
    Client for a browser-sync process.

    ``active`` is true between a successful ``init()`` and ``exit()``.
    """

    def __init__(
        self,
        config: ProxyConfig,
        tls: TlsConfig,
        cwd: Path,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.tls = tls
        self.cwd = cwd
        self._transport = transport
        self._process: Optional[asyncio.subprocess.Process] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._output_task: Optional[asyncio.Task] = None
        self._config_dir: Optional[tempfile.TemporaryDirectory] = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def base_url(self) -> str:
        return f"https://localhost:{self.config.port}"

    def build_options(self) -> Dict[str, Any]:
        """browser-sync options; file watching is left to the pipelines."""
        return {
            "watch": False,
            "open": False,
            "online": False,
            "injectChanges": self.config.inject_changes,
            "browser": self.config.browser,
            "socket": {
                "socketIoOptions": {
                    "log": False,
                    "cookie": False,
                },
            },
            "notify": self.config.notify,
            "proxy": {
                "target": self.config.target,
                "ws": True,
            },
            "https": {
                "key": str(self.tls.key),
                "cert": str(self.tls.cert),
            },
            "port": self.config.port,
        }

    def write_config_file(self) -> Path:
        if self._config_dir is None:
            self._config_dir = tempfile.TemporaryDirectory(prefix="themedev-bs-")
        config_file = Path(self._config_dir.name) / "bs-config.json"
        config_file.write_text(json.dumps(self.build_options(), indent=2), encoding="utf-8")
        return config_file

    def build_command(self, config_file: Path) -> List[str]:
        return self.config.command + ["start", "--config", str(config_file)]

    async def init(self) -> None:
        """
        Start browser-sync and wait until it serves.

        Raises:
            ProxyStartupError: If the process cannot be launched, exits early
                or does not report readiness within the startup timeout
        """
        if self._active:
            return
        logger.info("🔄 Starting BrowserSync...")

        command = self.build_command(self.write_config_file())
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            self._cleanup_config()
            raise ProxyStartupError(f"Could not launch {command[0]}: {e}") from e

        try:
            await asyncio.wait_for(self._wait_until_ready(), timeout=self.config.startup_timeout)
        except asyncio.TimeoutError:
            await self._stop_process()
            raise ProxyStartupError(
                f"browser-sync did not report '{self.config.ready_marker}' "
                f"within {self.config.startup_timeout}s"
            )
        except ProxyStartupError:
            await self._stop_process()
            raise

        self._output_task = asyncio.create_task(self._relay_output(), name="browser-sync-output")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            verify=False,  # local self-signed certificate
            timeout=5.0,
            transport=self._transport,
        )
        self._active = True
        logger.info(f"Proxying {self.config.target} at {self.base_url}")

    async def _wait_until_ready(self) -> None:
        recent = deque(maxlen=STARTUP_OUTPUT_LINES)
        while True:
            line = await self._process.stdout.readline()
            if not line:
                returncode = await self._process.wait()
                raise ProxyStartupError(
                    f"browser-sync exited with code {returncode} before it was ready"
                    + ("\n" + "\n".join(recent) if recent else "")
                )
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                recent.append(text)
                logger.info(text)
            if self.config.ready_marker in text:
                return

    async def _relay_output(self) -> None:
        # Keeps the pipe drained; browser-sync prints URLs and reload notices.
        async for line in self._process.stdout:
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.info(text)

    async def reload(self, path: Optional[str] = None) -> None:
        """
        Ask connected browsers to reload.

        With ``path`` only that asset is reloaded (stylesheets are injected
        without a page refresh); without it the whole page reloads. Failures
        are logged and otherwise ignored.
        """
        if not self._active or self._client is None:
            logger.debug("Reload requested while the proxy is not active")
            return

        params = {"method": "reload"}
        if path:
            params["args"] = path
        try:
            response = await self._client.get(RELOAD_ENDPOINT, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Reload request to browser-sync failed: {e}")
            return
        logger.debug(f"Reload sent ({path or 'full page'})")

    async def exit(self) -> None:
        """Stop browser-sync and release the HTTP client."""
        self._active = False
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self._stop_process()
        if self._output_task is not None:
            self._output_task.cancel()
            await asyncio.gather(self._output_task, return_exceptions=True)
            self._output_task = None
        self._cleanup_config()

    async def _stop_process(self) -> None:
        if self._process is not None and self._process.returncode is None:
            await asyncio.to_thread(terminate_process_tree, self._process.pid, "browser-sync")
        self._process = None

    def _cleanup_config(self) -> None:
        if self._config_dir is not None:
            self._config_dir.cleanup()
            self._config_dir = None
