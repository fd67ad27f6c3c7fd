"""
Fluent query builder.

Collects predicates (in declared field names), modifiers, a populate list
and optional aggregation stages, then compiles them to store syntax:

- no stages and no populate: a plain filtered ``find``
- otherwise: ``[$match, population..., stages..., $sort, $skip, $limit, $project]``

Usage:
    posts = await (
        Post.query()
        .where("status", "equal", "published")
        .where("views", "greaterThan", 100)
        .sort_by("created_at", "desc")
        .paginate(2, 20)
        .populate("author")
        .execute()
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pymongo.errors import PyMongoError

from docweave.core.exceptions import CountError, ExplainError, QueryBuildError
from docweave.fields.descriptor import Document
from docweave.infrastructure.logging import get_logger
from docweave.utils.ids import ID_FIELD, to_object_id

from .aggregation import PipelineStagesMixin, Stage
from .operators import Operator, compile_condition, compile_text, parse_operator

if TYPE_CHECKING:
    from docweave.models.model import Model

logger = get_logger(__name__)

_DIRECTIONS = {
    1: 1, -1: -1,
    "asc": 1, "ascending": 1,
    "desc": -1, "descending": -1,
}


def _direction(value: Any) -> int:
    key = value.lower() if isinstance(value, str) else value
    if key not in _DIRECTIONS:
        raise QueryBuildError(f"Invalid sort direction: {value}", direction=value)
    return _DIRECTIONS[key]


class QueryBuilder(PipelineStagesMixin):
    """Builder over one model. Every modifier returns the builder."""

    def __init__(self, model: Model, filter: Document | None = None) -> None:
        self._model = model
        self._filter: Document = dict(filter or {})
        self._sort: list[tuple[str, int]] = []
        self._skip: int | None = None
        self._limit: int | None = None
        self._projection: dict[str, Any] | None = None
        self._populate: list[str] = []
        self._stages: list[Stage] = []

    # ---- predicates ----

    def where(self, field: str, operator: str | Operator = Operator.EQUAL, value: Any = None) -> QueryBuilder:
        op = parse_operator(operator)
        if op is Operator.TEXT:
            self._filter.update(compile_text(value))
            return self

        condition = compile_condition(op, value)
        if field == ID_FIELD:
            condition = {
                key: [to_object_id(v) for v in val] if isinstance(val, list) else to_object_id(val)
                for key, val in condition.items()
            }

        existing = self._filter.get(field)
        if isinstance(existing, dict) and all(key.startswith("$") for key in existing):
            existing.update(condition)
        else:
            self._filter[field] = condition
        return self

    def where_id(self, document_id: Any) -> QueryBuilder:
        self._filter[ID_FIELD] = to_object_id(document_id)
        return self

    def and_(self, *filters: Document | QueryBuilder) -> QueryBuilder:
        return self._combine("$and", filters)

    def or_(self, *filters: Document | QueryBuilder) -> QueryBuilder:
        return self._combine("$or", filters)

    def nor(self, *filters: Document | QueryBuilder) -> QueryBuilder:
        return self._combine("$nor", filters)

    def not_(self, field: str, operator: str | Operator, value: Any) -> QueryBuilder:
        self._filter[field] = {"$not": compile_condition(operator, value)}
        return self

    def _combine(self, operator: str, filters: tuple[Document | QueryBuilder, ...]) -> QueryBuilder:
        if not filters:
            raise QueryBuildError(f"{operator} needs at least one filter", operator=operator)
        clauses = [f._filter if isinstance(f, QueryBuilder) else dict(f) for f in filters]
        self._filter.setdefault(operator, []).extend(clauses)
        return self

    # ---- modifiers ----

    def sort_by(self, field: str | dict[str, Any], direction: Any = 1) -> QueryBuilder:
        if isinstance(field, dict):
            for name, value in field.items():
                self._sort.append((name, _direction(value)))
        else:
            self._sort.append((field, _direction(direction)))
        return self

    def limit(self, n: int) -> QueryBuilder:
        if n < 0:
            raise QueryBuildError("limit must not be negative", limit=n)
        self._limit = n
        return self

    def skip(self, n: int) -> QueryBuilder:
        if n < 0:
            raise QueryBuildError("skip must not be negative", skip=n)
        self._skip = n
        return self

    def select(self, *fields: str | dict[str, Any]) -> QueryBuilder:
        projection: dict[str, Any] = dict(self._projection or {})
        for item in fields:
            if isinstance(item, dict):
                projection.update(item)
            else:
                projection[item] = 1
        self._projection = projection
        return self

    def paginate(self, page: int, page_size: int) -> QueryBuilder:
        if page < 1 or page_size < 1:
            raise QueryBuildError(
                "page and page_size must be at least 1",
                page=page,
                page_size=page_size,
            )
        self._skip = (page - 1) * page_size
        self._limit = page_size
        return self

    def populate(self, *fields: str) -> QueryBuilder:
        for name in fields:
            if name not in self._populate:
                self._populate.append(name)
        return self

    # ---- compilation ----

    @property
    def populated_fields(self) -> list[str]:
        return list(self._populate)

    def build_filter(self) -> Document:
        """Store-shaped filter, default filters included."""
        return self._model.store_filter(self._filter)

    def build_options(self) -> dict[str, Any]:
        fields = self._model.fields
        options: dict[str, Any] = {}
        if self._sort:
            options["sort"] = [(fields.store_path(name), d) for name, d in self._sort]
        if self._skip:
            options["skip"] = self._skip
        if self._limit:
            options["limit"] = self._limit
        if self._projection:
            options["projection"] = {
                fields.store_path(name): value for name, value in self._projection.items()
            }
        return options

    def build_pipeline(self) -> list[Stage]:
        options = self.build_options()
        pipeline: list[Stage] = [{"$match": self.build_filter()}]
        pipeline.extend(self._model.resolver.build_stages(self._populate))
        pipeline.extend(self._stages)
        if "sort" in options:
            pipeline.append({"$sort": dict(options["sort"])})
        if "skip" in options:
            pipeline.append({"$skip": options["skip"]})
        if "limit" in options:
            pipeline.append({"$limit": options["limit"]})
        if "projection" in options:
            projection = dict(options["projection"])
            if all(value for value in projection.values()):
                # keep populated fields visible under an inclusion projection
                for name in self._populate:
                    projection.setdefault(name, 1)
            pipeline.append({"$project": projection})
        return pipeline

    @property
    def uses_pipeline(self) -> bool:
        return bool(self._stages or self._populate)

    # ---- execution ----

    async def execute(self, session: Any = None) -> list[Document]:
        """Run the query and return documents in their declared shape."""
        model = self._model
        if not self.uses_pipeline:
            documents = await model.run_find(self.build_filter(), self.build_options(), session=session)
            return [model.fields.unalias_document(doc) for doc in documents]

        pipeline = self.build_pipeline()
        documents = await model.run_pipeline(pipeline, session=session)
        documents = [model.fields.unalias_document(doc) for doc in documents]
        return await model.resolver.resolve(documents, self._populate, session=session)

    async def first(self, session: Any = None) -> Document | None:
        self._limit = 1
        documents = await self.execute(session=session)
        return documents[0] if documents else None

    async def count(self, session: Any = None) -> int:
        query = self.build_filter()
        try:
            return await self._model.collection.count_documents(query, session=session)
        except PyMongoError as e:
            logger.error(f"count on {self._model.collection_name} failed: {e}")
            raise CountError("count", filter=query, cause=e) from e

    async def explain(self) -> dict[str, Any]:
        query = self.build_filter()
        options = self.build_options()
        try:
            return await self._model.collection.explain(query, **options)
        except PyMongoError as e:
            logger.error(f"explain on {self._model.collection_name} failed: {e}")
            raise ExplainError("explain", filter=query, options=options, cause=e) from e

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(model={self._model.name!r}, filter={self._filter!r}, "
            f"populate={self._populate!r}, stages={len(self._stages)})"
        )
