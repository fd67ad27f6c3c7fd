"""
Document lifecycle engine.

Every write goes through one strictly ordered pipeline:

    schema sync -> validate -> relationship integrity -> defaults ->
    transforms -> alias mapping -> pre hooks -> persist -> post hooks

Pre hooks see the aliased document exactly as it will be persisted and may
mutate it; a pre hook failure aborts before anything reaches the store.
Post hooks run after the write committed, so their failures surface to the
caller without any rollback.

Bulk ``update`` reads the matching documents first to check immutable
fields, then issues one ``update_many``. The two calls are not atomic with
respect to other writers unless the caller passes a session bound to a
transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pymongo.errors import DuplicateKeyError as StoreDuplicateKeyError
from pymongo.errors import PyMongoError

from docweave.core.exceptions import (
    DocumentNotFoundError,
    DuplicateKeyError,
    ForeignKeyViolationError,
    ImmutableFieldError,
    QueryExecutionError,
    WriteError,
)
from docweave.fields.descriptor import MISSING, Document, FieldDescriptor, FieldKind
from docweave.fields.registry import update_touches
from docweave.hooks.registry import HookPhase
from docweave.infrastructure.logging import get_logger
from docweave.relationships.descriptor import RelationshipKind
from docweave.utils.ids import ID_FIELD, to_object_id

if TYPE_CHECKING:
    from docweave.models.model import Model

logger = get_logger(__name__)


def as_update_document(patch: Document) -> Document:
    """Wrap a plain field patch in ``$set``; operator documents pass through."""
    if patch and all(key.startswith("$") for key in patch):
        return {operator: dict(section) if isinstance(section, dict) else section
                for operator, section in patch.items()}
    return {"$set": dict(patch)}


def fill_defaults(fields: Any, document: Document) -> None:
    """Assign defaults to undefined fields, recursing into nested objects."""
    descriptors = fields.values() if isinstance(fields, dict) else fields
    for descriptor in descriptors:
        if descriptor.kind is FieldKind.RELATIONSHIP:
            continue
        if descriptor.name not in document:
            if descriptor.has_default:
                document[descriptor.name] = descriptor.resolve_default()
            elif descriptor.kind is FieldKind.NESTED and _has_nested_defaults(descriptor):
                document[descriptor.name] = {}
            else:
                continue
        value = document[descriptor.name]
        if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
            fill_defaults(descriptor.children, value)


def _has_nested_defaults(descriptor: FieldDescriptor) -> bool:
    for child in descriptor.children.values():
        if child.has_default:
            return True
        if child.kind is FieldKind.NESTED and _has_nested_defaults(child):
            return True
    return False


def apply_transforms(fields: Any, document: Document) -> None:
    """Replace each defined value with ``transform(value)``, nested included."""
    descriptors = fields.values() if isinstance(fields, dict) else fields
    for descriptor in descriptors:
        if descriptor.name not in document:
            continue
        value = document[descriptor.name]
        if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
            apply_transforms(descriptor.children, value)
        if descriptor.transform is not None and value is not None:
            document[descriptor.name] = descriptor.transform(document[descriptor.name])


def _value_at(document: Document, path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return MISSING
        value = value[part]
    return value


class LifecycleEngine:
    """Write pipeline for one model."""

    def __init__(self, model: Model) -> None:
        self._model = model

    @property
    def model(self) -> Model:
        return self._model

    # ---- save ----

    async def save(self, data: Document, session: Any = None) -> Any:
        """
        Validate, prepare and persist one document.

        Without ``_id`` the document is inserted; with ``_id`` the stored
        document is updated in place and must exist.

        Args:
            data: Document in its declared shape
            session: Optional store session

        Returns:
            The document identifier
        """
        model = self._model
        await model.enforcer.ensure_synced()

        document = dict(data)
        document_id = document.pop(ID_FIELD, None)

        await model.validator.validate(document)
        await self.check_integrity(document, session=session)
        fill_defaults(model.fields, document)
        apply_transforms(model.fields, document)

        stored = model.fields.alias_document(document)
        if document_id is not None:
            document_id = to_object_id(document_id)
            stored = {ID_FIELD: document_id, **stored}

        await model.hooks.execute(HookPhase.PRE_SAVE, stored)

        if document_id is None:
            document_id = await self._insert(stored, session)
        else:
            await self._replace_fields(document_id, document, stored, session)

        await model.hooks.execute(HookPhase.POST_SAVE, stored)
        logger.debug_with_context(
            "Document saved",
            context={"model": model.name, "id": str(document_id)},
        )
        return document_id

    async def _insert(self, stored: Document, session: Any) -> Any:
        collection = self._model.collection
        try:
            result = await collection.insert_one(stored, session=session)
        except StoreDuplicateKeyError as e:
            raise DuplicateKeyError("insert_one", cause=e) from e
        except PyMongoError as e:
            logger.error(f"Insert into {collection.name} failed: {e}")
            raise WriteError("insert_one", cause=e) from e
        stored[ID_FIELD] = result.inserted_id
        return result.inserted_id

    async def _replace_fields(
        self,
        document_id: Any,
        document: Document,
        stored: Document,
        session: Any,
    ) -> None:
        model = self._model
        query = {ID_FIELD: document_id}

        immutable = model.fields.immutable_paths()
        if immutable:
            existing = await self._read(query, session)
            if not existing:
                raise DocumentNotFoundError(document_id, model.collection_name)
            current = model.fields.unalias_document(existing[0])
            for path, descriptor in immutable:
                new_value = _value_at(document, path)
                if new_value is MISSING or not descriptor.is_immutable_for(current):
                    continue
                if new_value != _value_at(current, path):
                    raise ImmutableFieldError(path, document_id)

        changes = {key: value for key, value in stored.items() if key != ID_FIELD}
        try:
            result = await model.collection.update_one(query, {"$set": changes}, session=session)
        except StoreDuplicateKeyError as e:
            raise DuplicateKeyError("update_one", filter=query, cause=e) from e
        except PyMongoError as e:
            raise WriteError("update_one", filter=query, cause=e) from e
        if result.matched_count == 0:
            raise DocumentNotFoundError(document_id, model.collection_name)

    # ---- update ----

    async def update(self, query: Document, patch: Document, session: Any = None) -> int:
        """
        Apply ``patch`` to every document matching the store-shaped ``query``.

        Returns:
            Number of modified documents
        """
        return await self._apply_update(query, patch, session, many=True)

    async def update_by_id(self, document_id: Any, patch: Document, session: Any = None) -> int:
        document_id = to_object_id(document_id)
        return await self._apply_update({ID_FIELD: document_id}, patch, session, many=False)

    async def _apply_update(
        self,
        query: Document,
        patch: Document,
        session: Any,
        many: bool,
    ) -> int:
        model = self._model
        await model.enforcer.ensure_synced()

        update = as_update_document(patch)
        await self.check_immutable(query, update, session=session)

        set_values = update.get("$set")
        if set_values:
            await model.validator.validate_partial(set_values)
            self._transform_set(set_values)

        stored_update = model.fields.alias_update(update)
        await model.hooks.execute(HookPhase.PRE_UPDATE, stored_update)

        collection = model.collection
        operation = "update_many" if many else "update_one"
        try:
            if many:
                result = await collection.update_many(query, stored_update, session=session)
            else:
                result = await collection.update_one(query, stored_update, session=session)
        except StoreDuplicateKeyError as e:
            raise DuplicateKeyError(operation, filter=query, cause=e) from e
        except PyMongoError as e:
            logger.error(f"{operation} on {collection.name} failed: {e}")
            raise WriteError(operation, filter=query, cause=e) from e

        if not many and result.matched_count == 0:
            raise DocumentNotFoundError(query[ID_FIELD], model.collection_name)

        await model.hooks.execute(HookPhase.POST_UPDATE, stored_update)
        logger.debug_with_context(
            "Documents updated",
            context={
                "model": model.name,
                "matched": result.matched_count,
                "modified": result.modified_count,
            },
        )
        return result.modified_count

    async def check_immutable(self, query: Document, update: Document, session: Any = None) -> None:
        """Reject ``update`` if it writes an immutable field of any matching document."""
        touched = [
            (path, descriptor)
            for path, descriptor in self._model.fields.immutable_paths()
            if update_touches(update, path)
        ]
        if not touched:
            return

        for stored in await self._read(query, session):
            current = self._model.fields.unalias_document(stored)
            for path, descriptor in touched:
                if descriptor.is_immutable_for(current):
                    raise ImmutableFieldError(path, stored.get(ID_FIELD))

    def _transform_set(self, values: Document) -> None:
        fields = self._model.fields
        for path, value in list(values.items()):
            descriptor = fields.descriptor_at(path)
            if descriptor is None:
                continue
            if descriptor.kind is FieldKind.NESTED and isinstance(value, dict):
                apply_transforms(descriptor.children, value)
            if descriptor.transform is not None and value is not None:
                values[path] = descriptor.transform(value)

    # ---- delete ----

    async def delete(self, query: Document, session: Any = None) -> int:
        """
        Delete every document matching ``query``, cascading where declared.

        Returns:
            Number of deleted documents
        """
        model = self._model
        await model.hooks.execute(HookPhase.PRE_REMOVE, query)

        cascading = model.relationships.cascading()
        if cascading:
            victims = await self._read(query, session)
            if victims:
                await self._cascade(victims, cascading, session)

        try:
            result = await model.collection.delete_many(query, session=session)
        except PyMongoError as e:
            logger.error(f"delete_many on {model.collection_name} failed: {e}")
            raise WriteError("delete_many", filter=query, cause=e) from e

        await model.hooks.execute(HookPhase.POST_REMOVE, query)
        logger.debug_with_context(
            "Documents deleted",
            context={"model": model.name, "deleted": result.deleted_count},
        )
        return result.deleted_count

    async def delete_by_id(self, document_id: Any, session: Any = None) -> int:
        return await self.delete({ID_FIELD: to_object_id(document_id)}, session=session)

    async def _cascade(
        self,
        victims: list[Document],
        cascading: list[tuple[str, Any]],
        session: Any,
    ) -> None:
        model = self._model
        ids = [doc[ID_FIELD] for doc in victims]
        for name, relationship in cascading:
            if relationship.kind is RelationshipKind.ONE_TO_MANY:
                related = relationship.resolve_related(model.registry)
                count = await related.delete(
                    {relationship.foreign_key: {"$in": ids}}, session=session
                )
            elif relationship.kind is RelationshipKind.ONE_TO_ONE:
                related = relationship.resolve_related(model.registry)
                local_key = model.fields.store_path(relationship.foreign_key)
                targets = [
                    _value_at(doc, local_key) for doc in victims
                ]
                targets = [t for t in targets if t is not MISSING and t is not None]
                if not targets:
                    continue
                count = await related.delete({ID_FIELD: {"$in": targets}}, session=session)
            else:
                junction = relationship.resolve_through(model.registry)
                count = await junction.delete(
                    {relationship.foreign_key: {"$in": ids}}, session=session
                )
            logger.debug(f"{model.name}.{name}: cascade removed {count} documents")

    # ---- relationship integrity ----

    async def check_integrity(self, document: Document, session: Any = None) -> None:
        """Every referenced related document must exist."""
        model = self._model
        for name, relationship in model.relationships.items():
            if relationship.kind is RelationshipKind.MANY_TO_MANY:
                continue
            field = name
            value = document.get(name)
            if value is None and relationship.kind is RelationshipKind.ONE_TO_ONE:
                field = relationship.foreign_key
                value = document.get(relationship.foreign_key)

            ids = _reference_ids(value)
            if not ids:
                continue

            related = relationship.resolve_related(model.registry)
            try:
                found = await related.collection.count_documents(
                    {ID_FIELD: {"$in": ids}}, session=session
                )
            except PyMongoError as e:
                raise QueryExecutionError(
                    "count_documents", filter={ID_FIELD: {"$in": ids}}, cause=e
                ) from e
            if found < len(ids):
                logger.debug(f"{model.name}.{field}: reference to missing {related.name}")
                raise ForeignKeyViolationError(field, value, related.collection_name)

    async def _read(self, query: Document, session: Any) -> list[Document]:
        collection = self._model.collection
        try:
            return await collection.find(query, session=session).to_list(None)
        except PyMongoError as e:
            raise QueryExecutionError("find", filter=query, cause=e) from e


def _reference_ids(value: Any) -> list[Any]:
    items = value if isinstance(value, (list, tuple)) else [value]
    ids: list[Any] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get(ID_FIELD)
        if item is None or item == "":
            continue
        item = to_object_id(item)
        if item not in ids:
            ids.append(item)
    return ids
