"""
Data models for the dev server.

Configuration Models:
- Server, proxy, TLS, bundler, lint and watch settings
- Per-pipeline build settings

Event Models:
- Pipeline identities
- Build success/failure events
- Template file change messages
"""

from .config import (
    AppConfig,
    BundlerConfig,
    LintConfig,
    PipelineConfig,
    ProxyConfig,
    ServerConfig,
    TlsConfig,
    WatchConfig,
)
from .events import BuildEvent, BuildFailure, BuildSuccess, FileChange, PipelineId

__all__ = [
    # Configuration
    "AppConfig",
    "BundlerConfig",
    "LintConfig",
    "PipelineConfig",
    "ProxyConfig",
    "ServerConfig",
    "TlsConfig",
    "WatchConfig",
    # Events
    "BuildEvent",
    "BuildFailure",
    "BuildSuccess",
    "FileChange",
    "PipelineId",
]
