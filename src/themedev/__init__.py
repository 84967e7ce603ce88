"""
themedev: development server for web theme projects.

Runs the style and script asset pipelines in watch mode, starts a
browser-sync proxy once both have built, live-reloads the proxied site on
every later build or template change, and lints styles after they build.

The package is organized into specialized modules:
- config: Configuration loading and validation
- models: Configuration and event data structures
- validation: Input validation and error handling
- system: Subprocess execution and process tree termination
- pipelines: Watch-mode builds through a shared worker pool
- coordination: Build sequencing and debouncing
- lint: Stylelint wrapper and lint-on-build trigger
- proxy: browser-sync client
- watchers: Template file watching
- orchestration: Dev server wiring, signals and shutdown
- cli: Command-line interface

Usage:
    From command line:
        themedev --config conf/devserver.toml [--hmr | --disable-hmr]

    Programmatically:
        from themedev import DevServer, get_config
        exit_code = asyncio.run(DevServer(get_config()).run())
"""

from .config import get_config, clear_config_cache, set_config_path
from .orchestration import DevServer
from .cli import main_cli

from .models import (
    AppConfig,
    BuildFailure,
    BuildSuccess,
    FileChange,
    PipelineId,
)
from .coordination import BuildCoordinator, CoordinatorState, DebouncedTask
from .features import resolve_hmr_enabled
from .validation import (
    DevServerError,
    LinterError,
    ProxyStartupError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "DevServer",
    "main_cli",
    # Models
    "AppConfig",
    "BuildFailure",
    "BuildSuccess",
    "FileChange",
    "PipelineId",
    # Coordination
    "BuildCoordinator",
    "CoordinatorState",
    "DebouncedTask",
    "resolve_hmr_enabled",
    # Errors
    "DevServerError",
    "LinterError",
    "ProxyStartupError",
    "ValidationError",
]
