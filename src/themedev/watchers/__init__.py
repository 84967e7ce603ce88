"""
Generic file watching for non-bundled files.
"""

from .files import FileChangeWatcher, GlobFilter, matches_glob

__all__ = [
    "FileChangeWatcher",
    "GlobFilter",
    "matches_glob",
]
