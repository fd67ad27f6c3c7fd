"""
Relationship resolver.

Turns a populate list into store pipeline stages and post-processes the
documents that come back:
- ONE_TO_ONE and ONE_TO_MANY are joined server side with ``$lookup``
- MANY_TO_MANY goes through the junction model in two batched reads
- every populated field ends up defined (``None`` for one-to-one, ``[]``
  for the to-many kinds)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from docweave.fields.descriptor import Document
from docweave.infrastructure.logging import get_logger

from .descriptor import RelationshipDescriptor, RelationshipKind

if TYPE_CHECKING:
    from docweave.models.model import Model
    from docweave.models.registry import ModelRegistry

logger = get_logger(__name__)


class RelationshipResolver:
    """Population for one host model."""

    def __init__(self, model: Model, registry: ModelRegistry | None = None) -> None:
        self._model = model
        self._registry = registry

    def _requested(
        self,
        populate: Iterable[str],
    ) -> list[tuple[str, RelationshipDescriptor]]:
        requested: list[tuple[str, RelationshipDescriptor]] = []
        for name in populate:
            relationship = self._model.relationships.get(name)
            if relationship is None:
                logger.debug(f"{self._model.name}: no relationship named {name}, skipping")
                continue
            requested.append((name, relationship))
        return requested

    def build_stages(self, populate: Iterable[str]) -> list[dict[str, Any]]:
        """
        Pipeline stages joining the requested relationships.

        Args:
            populate: Relationship field names

        Returns:
            ``$lookup`` stages with their ``$unwind``/``$addFields`` companions
        """
        stages: list[dict[str, Any]] = []
        for name, relationship in self._requested(populate):
            if relationship.kind is RelationshipKind.MANY_TO_MANY:
                continue
            related = relationship.resolve_related(self._registry)

            if relationship.kind is RelationshipKind.ONE_TO_ONE:
                stages.append({
                    "$lookup": {
                        "from": related.collection_name,
                        "localField": self._model.fields.store_path(relationship.foreign_key),
                        "foreignField": "_id",
                        "as": name,
                    }
                })
                stages.append({
                    "$unwind": {
                        "path": f"${name}",
                        "preserveNullAndEmptyArrays": True,
                    }
                })
            else:
                stages.append({
                    "$lookup": {
                        "from": related.collection_name,
                        "localField": "_id",
                        "foreignField": related.fields.store_path(relationship.foreign_key),
                        "as": name,
                    }
                })
                stages.append({
                    "$addFields": {name: {"$ifNull": [f"${name}", []]}}
                })
        return stages

    async def resolve(
        self,
        documents: list[Document],
        populate: Iterable[str],
        session: Any = None,
    ) -> list[Document]:
        """Finish population on documents already read through ``build_stages``."""
        populate = list(populate)
        self.unalias_populated(documents, populate)
        await self.resolve_many_to_many(documents, populate, session=session)
        return self.normalize(documents, populate)

    def unalias_populated(self, documents: list[Document], populate: Iterable[str]) -> None:
        """Rename joined subdocuments back to the related model's declared names."""
        for name, relationship in self._requested(populate):
            if relationship.kind is RelationshipKind.MANY_TO_MANY:
                continue
            fields = relationship.resolve_related(self._registry).fields
            for document in documents:
                value = document.get(name)
                if isinstance(value, dict):
                    document[name] = fields.unalias_document(value)
                elif isinstance(value, list):
                    document[name] = [
                        fields.unalias_document(item) if isinstance(item, dict) else item
                        for item in value
                    ]

    async def resolve_many_to_many(
        self,
        documents: list[Document],
        populate: Iterable[str],
        session: Any = None,
    ) -> None:
        """Fill many-to-many fields from the junction model, batched per field."""
        for name, relationship in self._requested(populate):
            if relationship.kind is not RelationshipKind.MANY_TO_MANY:
                continue

            host_ids = [doc["_id"] for doc in documents if doc.get("_id") is not None]
            if not host_ids:
                for document in documents:
                    document[name] = []
                continue

            junction = relationship.resolve_through(self._registry)
            related = relationship.resolve_related(self._registry)
            target_key = relationship.junction_target_key

            rows = await junction.find(
                {relationship.foreign_key: {"$in": host_ids}},
                session=session,
            )
            target_ids: list[Any] = []
            for row in rows:
                target_id = row.get(target_key)
                if target_id is not None and target_id not in target_ids:
                    target_ids.append(target_id)

            targets = (
                await related.find({"_id": {"$in": target_ids}}, session=session)
                if target_ids else []
            )
            by_id = {target["_id"]: target for target in targets}

            grouped: dict[Any, list[Document]] = {}
            for row in rows:
                target = by_id.get(row.get(target_key))
                if target is not None:
                    grouped.setdefault(row.get(relationship.foreign_key), []).append(target)

            for document in documents:
                document[name] = grouped.get(document.get("_id"), [])

            logger.debug(
                f"{self._model.name}.{name}: {len(rows)} junction rows, "
                f"{len(targets)} targets"
            )

    def normalize(self, documents: list[Document], populate: Iterable[str]) -> list[Document]:
        """Make every populated field defined."""
        requested = self._requested(populate)
        for document in documents:
            for name, relationship in requested:
                if relationship.kind is RelationshipKind.ONE_TO_ONE:
                    value = document.get(name)
                    if isinstance(value, list):
                        value = value[0] if value else None
                    document[name] = value
                elif document.get(name) is None:
                    document[name] = []
        return documents
