"""
Core module for swapstudio.

Contains configuration, error handling, and logging setup.
"""

from swapstudio.core.config import settings
from swapstudio.core.errors import StudioError

__all__ = ["settings", "StudioError"]
