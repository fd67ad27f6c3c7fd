"""
Schema enforcement.

Derives two things from a model's field registry and pushes them to the
store:
- a ``$jsonSchema`` validator (attached with ``collMod``)
- the index list (created in one ``create_indexes`` batch)

Both derivations are pure; ``sync`` is idempotent and safe to repeat.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from pymongo import ASCENDING, IndexModel
from pymongo.errors import PyMongoError

from docweave.core.config import SchemaSettings
from docweave.core.exceptions import WriteError
from docweave.fields.descriptor import FieldDescriptor, FieldKind, FieldType
from docweave.fields.registry import FieldRegistry
from docweave.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from docweave.infrastructure.store import MotorStore, StoreCollection

logger = get_logger(__name__)

BSON_TYPES: dict[FieldType, str] = {
    FieldType.STRING: "string",
    FieldType.NUMBER: "number",
    FieldType.BOOLEAN: "bool",
    FieldType.DATE: "date",
    FieldType.ARRAY: "array",
    FieldType.OBJECT: "object",
    FieldType.OBJECT_ID: "objectId",
}


def bson_type(type_tag: FieldType | None) -> str | None:
    if type_tag is None:
        return None
    return BSON_TYPES.get(type_tag, "string")


def build_validator(fields: FieldRegistry | Iterable[FieldDescriptor]) -> dict[str, Any]:
    """
    Structural validator for a set of fields.

    Args:
        fields: A field registry, or top-level descriptors

    Returns:
        ``{"$jsonSchema": {...}}`` keyed by store names
    """
    return {"$jsonSchema": _object_schema(list(fields))}


def _object_schema(descriptors: list[FieldDescriptor]) -> dict[str, Any]:
    schema: dict[str, Any] = {"bsonType": "object", "required": [], "properties": {}}
    for descriptor in descriptors:
        if not descriptor.is_persisted:
            continue
        if descriptor.required:
            schema["required"].append(descriptor.store_name)
        schema["properties"][descriptor.store_name] = _property_schema(descriptor)
    if not schema["required"]:
        # $jsonSchema rejects an empty required array
        del schema["required"]
    return schema


def _property_schema(descriptor: FieldDescriptor) -> dict[str, Any]:
    if descriptor.kind is FieldKind.NESTED:
        prop = _object_schema(list(descriptor.children.values()))
    else:
        prop = {}
        tag = bson_type(descriptor.type_tag)
        if tag is not None:
            prop["bsonType"] = [tag, "null"] if descriptor.nullable else tag

    if descriptor.enum is not None:
        prop["enum"] = list(descriptor.enum)
    if _is_number(descriptor.min):
        prop["minimum"] = descriptor.min
    if _is_number(descriptor.max):
        prop["maximum"] = descriptor.max
    if descriptor.regex is not None:
        prop["pattern"] = descriptor.regex.pattern
    if descriptor.immutable:
        prop["readOnly"] = True
    if descriptor.description:
        prop["description"] = descriptor.description
    return prop


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def build_indexes(fields: FieldRegistry) -> list[IndexModel]:
    """One ``IndexModel`` per unique/indexed field spec."""
    indexes: list[IndexModel] = []
    for spec in fields.index_specs:
        keys = [(path, ASCENDING) for path in spec["key"]]
        indexes.append(IndexModel(keys, unique=spec.get("unique", False)))
    return indexes


class SchemaEnforcer:
    """
    Keeps one collection's validator and indexes in line with its fields.

    Usage:
        enforcer = SchemaEnforcer(model.fields, collection, store, settings)
        await enforcer.sync()
    """

    def __init__(
        self,
        fields: FieldRegistry,
        collection: StoreCollection,
        store: MotorStore | None = None,
        settings: SchemaSettings | None = None,
    ) -> None:
        self._fields = fields
        self._collection = collection
        self._store = store
        self._settings = settings or SchemaSettings()
        self._synced_signature: tuple[int, int] | None = None

    @property
    def settings(self) -> SchemaSettings:
        return self._settings

    def _signature(self) -> tuple[int, int]:
        return (len(self._fields), len(self._fields.index_specs))

    @property
    def is_synced(self) -> bool:
        return self._synced_signature == self._signature()

    def build_validator(self) -> dict[str, Any]:
        return build_validator(self._fields)

    def build_indexes(self) -> list[IndexModel]:
        return build_indexes(self._fields)

    async def sync(self, session: Any = None) -> None:
        """Ensure the collection, push the validator, create indexes."""
        name = self._collection.name

        if self._store is not None:
            await self._store.ensure_collection(name)
            if self._settings.push_validator:
                await self._store.modify_schema(
                    name,
                    self.build_validator(),
                    validation_level=self._settings.validation_level,
                    validation_action=self._settings.validation_action,
                )

        if self._settings.create_indexes:
            await self.ensure_indexes(session=session)

        self._synced_signature = self._signature()
        logger.debug_with_context(
            "Schema synchronized",
            context={"collection": name, "fields": len(self._fields)},
        )

    async def ensure_indexes(self, session: Any = None) -> list[str]:
        indexes = self.build_indexes()
        if not indexes:
            return []
        try:
            return await self._collection.create_indexes(indexes, session=session)
        except PyMongoError as e:
            logger.error(f"Index creation failed on {self._collection.name}: {e}")
            raise WriteError(
                "create_indexes",
                filter={"collection": self._collection.name},
                cause=e,
            ) from e

    async def ensure_synced(self) -> None:
        """
        Sync once per registry shape; later registrations trigger a re-sync.

        Runs outside any caller session: index creation on an existing
        collection is rejected inside a multi-document transaction.
        """
        if not self._settings.auto_sync or self.is_synced:
            return
        await self.sync()
