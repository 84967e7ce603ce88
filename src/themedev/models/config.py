"""
Configuration data models.

This module contains the configuration structures for the proxy, the two
asset pipelines, the linter and the template watcher, as loaded from
`devserver.toml`.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .events import PipelineId


@dataclass
class ServerConfig:
    """
    Global settings from the `[server]` section.
    """

    # Human readable project name shown in the start banner.
    name: str
    # Root of the theme; relative paths elsewhere resolve against it.
    theme_dir: Path
    # package.json inspected for the hot-reload feature flag.
    package_json: Path
    # Upper bound for in-flight builds to finish during shutdown.
    shutdown_timeout: float = 10.0


@dataclass
class TlsConfig:
    """Certificate pair shared by the proxy and the HMR server."""

    key: Path
    cert: Path


@dataclass
class ProxyConfig:
    """
    Settings for the browser-sync reload proxy, from `[proxy]`.
    """

    # The local site being proxied (e.g. "https://airdev.test").
    target: str
    # Port browser-sync listens on.
    port: int
    # Command used to launch browser-sync, without the "start" arguments.
    command: List[str]
    browser: str = "google chrome"
    notify: bool = True
    inject_changes: bool = True
    # Seconds to wait for the ready marker before failing startup.
    startup_timeout: float = 30.0
    # Text printed by browser-sync once it is serving.
    ready_marker: str = "Access URLs"


@dataclass
class BundlerConfig:
    """Shared bundler settings from `[bundler]`."""

    # Maximum number of bundler processes running at once across pipelines.
    max_workers: int = 2


@dataclass
class PipelineConfig:
    """
    One asset pipeline, from a `[[pipelines]]` entry.
    """

    pipeline_id: PipelineId
    # Name used in build messages ("Sass", "JavaScript").
    label: str
    entries: List[str]
    dist_dir: Path
    # Directories watched for changes, relative to the theme dir.
    watch: List[str]
    # Bundler command tokens; see PipelineWatcher for placeholders.
    command: List[str]
    # Long-running watch command with an HMR server, used instead of
    # `command` when hot module replacement is enabled.
    hmr_command: List[str] = field(default_factory=list)
    # "inject", "full" or "none".
    reload: str = "full"
    # Output reloaded in place when reload == "inject".
    reload_path: Optional[str] = None

    @property
    def supports_hmr(self) -> bool:
        return bool(self.hmr_command)


@dataclass
class LintConfig:
    """Stylelint settings from `[lint]`."""

    enabled: bool
    command: List[str]
    files: str
    formatter: str = "string"
    quiet_period_ms: int = 1000


@dataclass
class WatchConfig:
    """Generic file watcher settings from `[watch]`."""

    patterns: List[str]
    ignore: List[str] = field(default_factory=list)


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    server: ServerConfig
    proxy: ProxyConfig
    tls: TlsConfig
    bundler: BundlerConfig
    # Exactly one style and one script pipeline, in that order.
    pipelines: List[PipelineConfig]
    lint: LintConfig
    watch: WatchConfig

    def pipeline(self, pipeline_id: PipelineId) -> PipelineConfig:
        for pipeline in self.pipelines:
            if pipeline.pipeline_id is pipeline_id:
                return pipeline
        raise KeyError(pipeline_id)
