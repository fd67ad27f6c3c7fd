"""
Infrastructure Store Module.

Provides the document-store adapter used by models.
"""

from .collection import MotorCollection, StoreCollection
from .motor_store import MotorStore

__all__ = ["MotorCollection", "MotorStore", "StoreCollection"]
