"""
Pytest configuration and shared fixtures for the themedev test suite.

This module provides common fixtures, stub collaborators and configuration
for all test modules.
"""

import asyncio
import copy
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from themedev.config import clear_config_cache  # noqa: E402
from themedev.config.validators import validate_app_config  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(autouse=True)
def reset_config_cache():
    """Make sure no test sees configuration cached by another."""
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


SAMPLE_CONFIG_DATA: Dict[str, Any] = {
    "server": {
        "name": "air-light",
        "theme_dir": ".",
        "package_json": "package.json",
        "shutdown_timeout": 2.0,
    },
    "proxy": {
        "target": "https://airdev.test",
        "port": 3000,
        "command": ["npx", "browser-sync"],
    },
    "tls": {
        "key": "/var/www/certs/localhost-key.pem",
        "cert": "/var/www/certs/localhost.pem",
    },
    "bundler": {"max_workers": 2},
    "pipelines": [
        {
            "role": "style",
            "label": "Sass",
            "entries": ["sass/global.scss"],
            "dist_dir": "dist/sass",
            "watch": ["sass"],
            "command": ["npx", "parcel", "build", "{entries}", "--dist-dir", "{dist_dir}"],
            "reload": "inject",
            "reload_path": "dist/sass/global.css",
        },
        {
            "role": "script",
            "label": "JavaScript",
            "entries": ["js/front-end.js"],
            "dist_dir": "dist/js",
            "watch": ["js"],
            "command": ["npx", "parcel", "build", "{entries}", "--dist-dir", "{dist_dir}"],
            "hmr_command": ["npx", "parcel", "watch", "{entries}", "--dist-dir", "{dist_dir}",
                            "--hmr-port", "3005", "--cert", "{tls_cert}", "--key", "{tls_key}"],
            "reload": "full",
        },
    ],
    "lint": {
        "enabled": True,
        "command": ["npx", "stylelint"],
        "files": "sass/**/*.scss",
        "quiet_period_ms": 50,
    },
    "watch": {"patterns": ["**/*.php"]},
}


@pytest.fixture
def sample_config_data():
    """Raw configuration data as it would come out of devserver.toml."""
    return copy.deepcopy(SAMPLE_CONFIG_DATA)


@pytest.fixture
def theme_dir(temp_dir):
    """A minimal theme tree with style, script and template sources."""
    (temp_dir / "sass").mkdir()
    (temp_dir / "sass" / "global.scss").write_text("body { color: red; }\n")
    (temp_dir / "js").mkdir()
    (temp_dir / "js" / "front-end.js").write_text("console.log('hi');\n")
    (temp_dir / "index.php").write_text("<?php echo 'hi';\n")
    return temp_dir


@pytest.fixture
def app_config(sample_config_data, theme_dir):
    """Validated AppConfig rooted at the temporary theme directory."""
    return validate_app_config(sample_config_data, theme_dir)


# ============================================================================
# Stub collaborators
# ============================================================================


class FakeProxy:
    """Instrumented reload proxy recording every call in order."""

    def __init__(self, fail_with: Optional[Exception] = None, calls: Optional[List] = None):
        self.fail_with = fail_with
        self.calls = calls if calls is not None else []
        self.init_calls = 0
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def init(self) -> None:
        self.init_calls += 1
        self.calls.append("init")
        if self.fail_with is not None:
            raise self.fail_with
        self._active = True

    async def reload(self, path: Optional[str] = None) -> None:
        self.calls.append(("reload", path))

    async def exit(self) -> None:
        self.calls.append("exit")
        self._active = False

    @property
    def reloads(self) -> List[Optional[str]]:
        return [call[1] for call in self.calls if isinstance(call, tuple) and call[0] == "reload"]


@pytest.fixture
def fake_proxy():
    return FakeProxy()


async def idle_awatch(*paths, watch_filter=None, stop_event=None, **kwargs):
    """Stand-in for watchfiles.awatch that reports no changes until stopped."""
    await stop_event.wait()
    return
    yield  # pragma: no cover


def batches_awatch(batches):
    """Stand-in for watchfiles.awatch yielding the given change batches."""
    async def _awatch(*paths, watch_filter=None, stop_event=None, **kwargs):
        for batch in batches:
            await asyncio.sleep(0)
            yield batch
    return _awatch
