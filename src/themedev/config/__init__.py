"""
Configuration management for the themedev package.

This module provides a clean interface for loading, validating, and accessing
the dev server configuration from a TOML file.
"""

from .manager import (
    clear_config_cache,
    get_config,
    get_config_info,
    is_config_loaded,
    set_config_path,
)
from .loader import load_main_config, load_toml_file, resolve_theme_dir
from .validators import (
    validate_app_config,
    validate_lint_config,
    validate_pipelines_config,
    validate_proxy_config,
    validate_watch_config,
)

__all__ = [
    # Main interface
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "get_config_info",
    # Advanced interface
    "load_toml_file",
    "load_main_config",
    "resolve_theme_dir",
    "validate_app_config",
    "validate_lint_config",
    "validate_pipelines_config",
    "validate_proxy_config",
    "validate_watch_config",
]
