"""
Lifecycle hooks.
"""

from .registry import Hook, HookPhase, HookRegistry

__all__ = ["Hook", "HookPhase", "HookRegistry"]
