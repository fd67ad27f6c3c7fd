"""
Lifecycle hook registry.

Hooks are plain callables (sync or async) taking the document being
written. They run in registration order; the first failure stops the
chain.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable

from docweave.core.exceptions import DocweaveError, HookExecutionError
from docweave.infrastructure.logging import get_logger

logger = get_logger(__name__)


class HookPhase(str, Enum):
    """Lifecycle phases a hook can attach to."""

    PRE_SAVE = "pre_save"
    POST_SAVE = "post_save"
    PRE_UPDATE = "pre_update"
    POST_UPDATE = "post_update"
    PRE_REMOVE = "pre_remove"
    POST_REMOVE = "post_remove"


Hook = Callable[[Any], Any]


class HookRegistry:
    """Registry of lifecycle hooks for one model.

    Example:
        hooks = HookRegistry()

        @hooks.register(HookPhase.PRE_SAVE)
        async def reject_empty_orders(order: dict) -> None:
            if order["total"] <= 0:
                raise ValueError("Order total must be greater than 0")
    """

    def __init__(self) -> None:
        self._hooks: dict[HookPhase, list[Hook]] = {}

    def register(self, phase: str | HookPhase) -> Callable[[Hook], Hook]:
        """Decorator to register a hook.

        Args:
            phase: The lifecycle phase.

        Returns:
            Decorator function.
        """
        def decorator(func: Hook) -> Hook:
            self.add_hook(phase, func)
            return func

        return decorator

    def add_hook(self, phase: str | HookPhase, handler: Hook) -> None:
        """Append a hook to a phase."""
        phase = HookPhase(phase)
        self._hooks.setdefault(phase, []).append(handler)
        logger.debug(f"Registered hook: {phase.value} -> {_hook_name(handler)}")

    def get_hooks(self, phase: str | HookPhase) -> list[Hook]:
        return list(self._hooks.get(HookPhase(phase), []))

    async def execute(self, phase: str | HookPhase, document: Any) -> None:
        """Run every hook of ``phase`` against ``document``, in order.

        Library errors raised deliberately by a hook (for example
        ``ImmutableFieldError`` from an immutable-field guard) propagate
        as they are; anything else is wrapped in ``HookExecutionError``.
        """
        phase = HookPhase(phase)
        for hook in self._hooks.get(phase, []):
            try:
                result = hook(document)
                if asyncio.iscoroutine(result):
                    await result
            except DocweaveError:
                raise
            except Exception as e:
                logger.warning_with_context(
                    f"Hook execution failed: {_hook_name(hook)}",
                    context={"phase": phase.value, "error": str(e)},
                )
                raise HookExecutionError(phase.value, _hook_name(hook), document, e) from e

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        return {
            "phases": {
                phase.value: len(hooks)
                for phase, hooks in self._hooks.items()
            },
            "total_hooks": sum(len(h) for h in self._hooks.values()),
        }


def _hook_name(hook: Hook) -> str:
    return getattr(hook, "__name__", type(hook).__name__)
