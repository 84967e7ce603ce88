"""
Configuration management and singleton pattern.

This module provides the main configuration loading interface, caching the
validated configuration so it is loaded only once per process.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import AppConfig
from .loader import load_main_config, resolve_theme_dir
from .validators import validate_app_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Configuration ---

_CONFIG: Optional[AppConfig] = None

# Default configuration file, relative to the repository root. The CLI
# overrides this with --config.
_CONFIG_FILE_PATH = Path(__file__).parent.parent.parent.parent / "conf" / "devserver.toml"


def set_config_path(config_path: Path) -> None:
    """
    Set a custom configuration file path.

    Clears any cached configuration so the next get_config() call loads
    from the new path.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = config_path
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """Clear the cached configuration, forcing a reload on next access."""
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def _load_config(config_path: Path) -> AppConfig:
    """
    Load and validate the configuration file.

    Failures are not logged here; they are reported once by the caller.

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    config_data = load_main_config(config_path)
    theme_dir = resolve_theme_dir(config_data, config_path.parent)
    app_config = validate_app_config(config_data, theme_dir)

    logger.info(
        f"Successfully loaded configuration for '{app_config.server.name}' "
        f"({len(app_config.pipelines)} pipelines, theme dir {theme_dir})"
    )
    return app_config


def get_config() -> AppConfig:
    """
    Get the application configuration, loading it on first access.

    Returns:
        The cached AppConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """Check if configuration has been loaded and cached."""
    return _CONFIG is not None


def get_config_info() -> dict:
    """
    Get information about the current configuration state.

    Returns:
        Dictionary with configuration metadata
    """
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(_CONFIG_FILE_PATH),
        "theme_dir": str(_CONFIG.server.theme_dir) if _CONFIG else None,
        "pipelines": [p.pipeline_id.value for p in _CONFIG.pipelines] if _CONFIG else [],
    }
