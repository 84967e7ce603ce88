"""
Configuration file loading utilities.

This module handles the low-level loading and parsing of the TOML
configuration file.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file.

    Errors propagate unlogged; the caller reports them.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        raise FileNotFoundError(f"{description} not found: {file_path}")

    with open(file_path, "rb") as f:
        return tomllib.load(f)


def load_main_config(config_path: Path) -> Dict[str, Any]:
    """Load the dev server configuration file (devserver.toml)."""
    return load_toml_file(config_path, "dev server configuration file")


def resolve_theme_dir(config_data: Dict[str, Any], config_dir: Path) -> Path:
    """
    Resolve the theme directory named in `[server]`.

    A relative `theme_dir` is taken relative to the directory that holds
    the configuration file.
    """
    theme_dir = Path(config_data.get("server", {}).get("theme_dir", "."))
    if not theme_dir.is_absolute():
        theme_dir = config_dir / theme_dir
    return theme_dir.resolve()
