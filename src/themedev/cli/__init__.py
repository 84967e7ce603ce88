"""
Command-line interface for the themedev package.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
