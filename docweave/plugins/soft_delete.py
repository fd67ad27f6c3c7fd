"""
Soft delete plugin.

Instead of removing documents, ``soft_delete(id)`` stamps ``deleted_at``.
Reads skip stamped documents through a default filter; filtering on
``deleted_at`` explicitly overrides it:

    trashed = await posts.find({"deleted_at": {"$ne": None}})
"""

from __future__ import annotations

from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from docweave.fields.builder import FieldBuilder
from docweave.infrastructure.logging import get_logger

from .base import Plugin
from .timestamp import utc_now

if TYPE_CHECKING:
    from docweave.models.model import Model

logger = get_logger(__name__)


class SoftDeletePlugin(Plugin):
    """Adds ``soft_delete``/``restore`` and hides soft-deleted documents."""

    def __init__(self, field: str = "deleted_at") -> None:
        self.field = field

    def install(self, model: Model) -> None:
        if self.field not in model.fields:
            model.add_field(FieldBuilder(self.field).type(datetime).nullable())
        # matches documents where the field is missing or null
        model.add_default_filter({self.field: None})
        model.extend("soft_delete", partial(self.soft_delete, model))
        model.extend("restore", partial(self.restore, model))

    async def soft_delete(self, model: Model, document_id: Any, session: Any = None) -> int:
        count = await model.update_by_id(document_id, {self.field: utc_now()}, session=session)
        logger.debug(f"{model.name}: soft deleted {document_id}")
        return count

    async def restore(self, model: Model, document_id: Any, session: Any = None) -> int:
        count = await model.update_by_id(document_id, {self.field: None}, session=session)
        logger.debug(f"{model.name}: restored {document_id}")
        return count
