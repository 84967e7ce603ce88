"""
Reload proxy client.
"""

from .browser_sync import BrowserSyncProxy

__all__ = ["BrowserSyncProxy"]
