"""
Timestamp plugin.

Adds ``created_at`` (set once, on insert) and ``updated_at`` (set on every
save and update) through pre hooks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from docweave.fields.builder import FieldBuilder
from docweave.fields.descriptor import Document
from docweave.hooks.registry import HookPhase
from docweave.utils.ids import ID_FIELD

from .base import Plugin

if TYPE_CHECKING:
    from docweave.models.model import Model


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampPlugin(Plugin):
    """Maintains creation and modification timestamps."""

    def __init__(
        self,
        created_field: str = "created_at",
        updated_field: str = "updated_at",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.created_field = created_field
        self.updated_field = updated_field
        self._clock = clock

    def install(self, model: Model) -> None:
        for name in (self.created_field, self.updated_field):
            if name not in model.fields:
                model.add_field(FieldBuilder(name).type(datetime))

        model.add_hook(HookPhase.PRE_SAVE, self._stamp_document)
        model.add_hook(HookPhase.PRE_UPDATE, self._stamp_update)

    def _stamp_document(self, document: Document) -> None:
        now = self._clock()
        if ID_FIELD not in document:
            document.setdefault(self.created_field, now)
        document[self.updated_field] = now

    def _stamp_update(self, update: Document) -> None:
        update.setdefault("$set", {})[self.updated_field] = self._clock()
