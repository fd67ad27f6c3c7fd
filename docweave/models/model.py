"""
Model: the aggregate root.

A model owns its field registry, relationship registry, hook registry,
validator list and index list, and is bound to exactly one collection.
Assemble it once (fields, relationships, hooks, validators, plugins), then
use it for the lifetime of the process.

Usage:
    users = Model("User", store=store, collection_name="users", registry=models)
    users.add_field(FieldBuilder("email").type(str).required().unique())
    users.add_relationship("posts", RelationshipKind.ONE_TO_MANY, "Post", "user_id")

    user_id = await users.save({"email": "ada@example.com"})
    user = await users.find_by_id(user_id, populate=["posts"])
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from pymongo.errors import PyMongoError

from docweave.core.config import SchemaSettings
from docweave.core.exceptions import AggregationError, ConfigurationError, QueryExecutionError
from docweave.engine.lifecycle import LifecycleEngine
from docweave.engine.validation import DocumentValidator
from docweave.fields.builder import FieldBuilder, relationship_field
from docweave.fields.descriptor import Document, FieldDescriptor
from docweave.fields.registry import FieldRegistry
from docweave.hooks.registry import Hook, HookPhase, HookRegistry
from docweave.infrastructure.logging import get_logger, log_context
from docweave.query.aggregation import AggregationBuilder
from docweave.query.builder import QueryBuilder
from docweave.relationships.descriptor import ModelRef, RelationshipDescriptor, RelationshipKind
from docweave.relationships.registry import RelationshipRegistry
from docweave.relationships.resolver import RelationshipResolver
from docweave.schema.enforcer import SchemaEnforcer
from docweave.utils.ids import ID_FIELD, convert_filter_ids, to_object_id

if TYPE_CHECKING:
    from docweave.infrastructure.store import MotorStore, StoreCollection
    from docweave.plugins.base import Plugin

    from .registry import ModelRegistry

logger = get_logger(__name__)

ModelValidator = Callable[[Document], Any]


class Model:
    """Schema-enforcing document model over one collection."""

    def __init__(
        self,
        name: str,
        store: MotorStore | None = None,
        collection_name: str | None = None,
        collection: StoreCollection | None = None,
        registry: ModelRegistry | None = None,
        schema_settings: SchemaSettings | None = None,
    ) -> None:
        if collection is None:
            if store is None:
                raise ConfigurationError(f"Model {name} needs a store or a collection")
            collection = store.collection(collection_name or name.lower())

        self.name = name
        self.store = store
        self.collection = collection
        self.registry = registry

        self.hooks = HookRegistry()
        self.validators: list[ModelValidator] = []
        self.fields = FieldRegistry(hooks=self.hooks, validators=self.validators)
        self.relationships = RelationshipRegistry()

        self.validator = DocumentValidator(self.fields, self.validators, model_name=name)
        self.enforcer = SchemaEnforcer(self.fields, collection, store, schema_settings)
        self.engine = LifecycleEngine(self)
        self.resolver = RelationshipResolver(self, registry)

        self._default_filters: list[Document] = []
        self._plugins: list[Plugin] = []

    @property
    def collection_name(self) -> str:
        return self.collection.name

    @property
    def indexes(self) -> list[dict[str, Any]]:
        return list(self.fields.index_specs)

    @property
    def plugins(self) -> list[Plugin]:
        return list(self._plugins)

    # ---- assembly ----

    def add_field(
        self,
        field: str | FieldDescriptor | FieldBuilder,
        descriptor: FieldDescriptor | FieldBuilder | None = None,
    ) -> Model:
        """
        Register a field.

        Accepts ``add_field(builder)``, ``add_field(descriptor)`` or
        ``add_field("name", builder_or_descriptor)``.
        """
        if isinstance(field, str):
            if descriptor is None:
                descriptor = FieldBuilder(field)
            name = field
        else:
            descriptor = field
            name = None
        if isinstance(descriptor, FieldBuilder):
            descriptor = descriptor.build()
        self.fields.register(name or descriptor.name, descriptor)
        return self

    def add_relationship(
        self,
        name: str,
        kind: RelationshipKind | str | RelationshipDescriptor,
        related_model: ModelRef | None = None,
        foreign_key: str | None = None,
        cascade: bool = False,
        bidirectional: bool = False,
        inverse_field: str | None = None,
        through: ModelRef | None = None,
        target_key: str | None = None,
    ) -> Model:
        """Declare a relationship populated under the virtual field ``name``."""
        if name in self.fields or name in self.relationships:
            raise ConfigurationError(
                f"Model {self.name} already declares {name}",
                config_key=name,
            )
        if isinstance(kind, RelationshipDescriptor):
            descriptor = kind
        else:
            if related_model is None or foreign_key is None:
                raise ConfigurationError(
                    f"Relationship {self.name}.{name} needs related_model and foreign_key",
                    config_key=name,
                )
            descriptor = RelationshipDescriptor(
                kind=RelationshipKind(kind),
                related_model=related_model,
                foreign_key=foreign_key,
                cascade=cascade,
                bidirectional=bidirectional,
                inverse_field=inverse_field,
                through=through,
                target_key=target_key,
            )
        self.relationships.register(name, descriptor)
        self.fields.register(name, relationship_field(name))
        return self

    def add_hook(self, phase: HookPhase | str, hook: Hook) -> Model:
        self.hooks.add_hook(phase, hook)
        return self

    def add_validator(self, validator: ModelValidator) -> Model:
        """Add a ``document -> {field: [messages]} | None`` validator."""
        self.validators.append(validator)
        return self

    def add_default_filter(self, filter: Document) -> Model:
        """Filter merged into every read unless the caller filters the same key."""
        self._default_filters.append(dict(filter))
        return self

    def use(self, plugin: Plugin) -> Model:
        plugin.install(self)
        self._plugins.append(plugin)
        logger.debug(f"{self.name}: installed plugin {type(plugin).__name__}")
        return self

    def extend(self, name: str, method: Callable[..., Any]) -> Model:
        """Attach a plugin-provided operation as ``model.<name>``."""
        if hasattr(self, name):
            raise ConfigurationError(
                f"Model {self.name} already has an attribute named {name}",
                config_key=name,
            )
        setattr(self, name, method)
        return self

    # ---- writes ----

    async def save(self, data: Document, session: Any = None) -> Any:
        with log_context(model=self.name, operation="save"):
            return await self.engine.save(data, session=session)

    async def update(self, filter: Document, patch: Document, session: Any = None) -> int:
        with log_context(model=self.name, operation="update"):
            return await self.engine.update(
                self.store_filter(filter, apply_defaults=False), patch, session=session
            )

    async def update_by_id(self, document_id: Any, patch: Document, session: Any = None) -> int:
        with log_context(model=self.name, operation="update_by_id"):
            return await self.engine.update_by_id(document_id, patch, session=session)

    async def delete(self, filter: Document, session: Any = None) -> int:
        with log_context(model=self.name, operation="delete"):
            return await self.engine.delete(
                self.store_filter(filter, apply_defaults=False), session=session
            )

    async def delete_by_id(self, document_id: Any, session: Any = None) -> int:
        with log_context(model=self.name, operation="delete_by_id"):
            return await self.engine.delete_by_id(document_id, session=session)

    # ---- reads ----

    def query(self, filter: Document | None = None) -> QueryBuilder:
        return QueryBuilder(self, filter)

    def aggregate(self) -> AggregationBuilder:
        return AggregationBuilder(self)

    async def find(
        self,
        filter: Document | None = None,
        sort: dict[str, Any] | None = None,
        skip: int | None = None,
        limit: int | None = None,
        projection: dict[str, Any] | list[str] | None = None,
        populate: Iterable[str] | None = None,
        session: Any = None,
    ) -> list[Document]:
        """Find documents; returned in their declared shape."""
        builder = self.query(filter)
        if sort:
            builder.sort_by(sort)
        if skip:
            builder.skip(skip)
        if limit:
            builder.limit(limit)
        if projection:
            if isinstance(projection, dict):
                builder.select(projection)
            else:
                builder.select(*projection)
        if populate:
            builder.populate(*populate)
        return await builder.execute(session=session)

    async def find_one(
        self,
        filter: Document | None = None,
        populate: Iterable[str] | None = None,
        session: Any = None,
    ) -> Document | None:
        builder = self.query(filter)
        if populate:
            builder.populate(*populate)
        return await builder.first(session=session)

    async def find_by_id(
        self,
        document_id: Any,
        populate: Iterable[str] | None = None,
        session: Any = None,
    ) -> Document | None:
        return await self.find_one({ID_FIELD: to_object_id(document_id)}, populate, session)

    async def count(self, filter: Document | None = None, session: Any = None) -> int:
        return await self.query(filter).count(session=session)

    # ---- store access ----

    def store_filter(self, filter: Document | None, apply_defaults: bool = True) -> Document:
        """Declared filter -> store filter (ids coerced, keys aliased)."""
        merged = dict(filter or {})
        if apply_defaults:
            for default in self._default_filters:
                for key, value in default.items():
                    merged.setdefault(key, value)
        return self.fields.alias_filter(convert_filter_ids(merged))

    async def run_find(
        self,
        filter: Document,
        options: dict[str, Any] | None = None,
        session: Any = None,
    ) -> list[Document]:
        """Plain filtered read with store-shaped filter and options."""
        options = options or {}
        try:
            cursor = self.collection.find(filter, session=session, **options)
            documents = await cursor.to_list(None)
        except PyMongoError as e:
            logger.error(f"find on {self.collection_name} failed: {e}")
            raise QueryExecutionError("find", filter=filter, options=options, cause=e) from e
        logger.debug(f"{self.name}: find returned {len(documents)} documents")
        return documents

    async def run_pipeline(self, pipeline: list[dict[str, Any]], session: Any = None) -> list[Document]:
        """Execute a raw aggregation pipeline."""
        if not pipeline:
            raise AggregationError("Aggregation pipeline cannot be empty", pipeline=[])
        try:
            cursor = self.collection.aggregate(pipeline, session=session)
            documents = await cursor.to_list(None)
        except PyMongoError as e:
            logger.error(f"aggregate on {self.collection_name} failed: {e}")
            raise AggregationError(
                f"Error in aggregate operation: {e}",
                pipeline=list(pipeline),
                cause=e,
            ) from e
        logger.debug(f"{self.name}: pipeline of {len(pipeline)} stages returned {len(documents)}")
        return documents

    async def ensure_indexes(self, session: Any = None) -> list[str]:
        return await self.enforcer.ensure_indexes(session=session)

    async def sync_schema(self, session: Any = None) -> None:
        await self.enforcer.sync(session=session)

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "collection": self.collection_name,
            "fields": {name: d.to_dict() for name, d in self.fields.items()},
            "relationships": {name: r.to_dict() for name, r in self.relationships.items()},
            "indexes": self.indexes,
            "hooks": self.hooks.get_stats(),
        }

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, collection={self.collection_name!r})"
