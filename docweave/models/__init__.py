"""
Models and the explicit model registry.
"""

from .model import Model
from .registry import ModelRegistry

__all__ = ["Model", "ModelRegistry"]
