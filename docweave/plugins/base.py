"""
Plugin base class.

A plugin packages fields, hooks, default filters and extra operations that
several models share. ``Model.use(plugin)`` calls ``install`` once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docweave.models.model import Model


class Plugin(ABC):
    """Base class for model plugins."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def install(self, model: Model) -> None:
        """Register this plugin's fields, hooks and operations on ``model``."""
