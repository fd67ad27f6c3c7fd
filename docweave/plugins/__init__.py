"""
Reusable model plugins.
"""

from .base import Plugin
from .soft_delete import SoftDeletePlugin
from .timestamp import TimestampPlugin

__all__ = ["Plugin", "SoftDeletePlugin", "TimestampPlugin"]
