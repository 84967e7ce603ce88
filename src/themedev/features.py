"""
Feature flag derivation.

Hot module replacement is only useful when the front-end code can be swapped
in place. Most theme scripts run inside a DOMContentLoaded handler that fires
once, so HMR is enabled only on request or when a reactive UI framework is a
dependency of the project.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)

REACTIVE_FRAMEWORKS = ("react", "react-dom")


def load_package_dependencies(package_json: Path) -> List[str]:
    """
    Return the runtime dependency names declared in a package.json.

    A missing or unreadable file yields no dependencies.
    """
    try:
        with open(package_json, "r", encoding="utf-8") as f:
            metadata = json.load(f)
    except FileNotFoundError:
        logger.debug(f"No package metadata at {package_json}")
        return []
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read package metadata {package_json}: {e}")
        return []

    dependencies = metadata.get("dependencies") if isinstance(metadata, dict) else None
    if not isinstance(dependencies, dict):
        return []
    return list(dependencies.keys())


def resolve_hmr_enabled(
    disable_flag: bool,
    enable_flag: bool,
    dependencies: Iterable[str],
) -> bool:
    """
    Decide whether hot module replacement is enabled.

    Precedence, highest first: the explicit disable flag, the explicit
    enable flag, then the presence of a reactive framework dependency.
    """
    if disable_flag:
        return False
    if enable_flag:
        return True
    return any(name in REACTIVE_FRAMEWORKS for name in dependencies)
