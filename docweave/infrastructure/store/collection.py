"""
Collection interface consumed by the engine.

The engine never talks to a driver directly. It goes through
``StoreCollection``, whose only implementation here wraps a motor
collection (or anything exposing the motor API, such as a
mongomock-motor collection).
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from pymongo import IndexModel

SortSpec = dict[str, int] | list[tuple[str, int]]


@runtime_checkable
class StoreCollection(Protocol):
    """Narrow view of a document-store collection."""

    @property
    def name(self) -> str: ...

    async def insert_one(self, document: dict[str, Any], session: Any = None) -> Any: ...

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        session: Any = None,
    ) -> Any: ...

    async def update_many(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        session: Any = None,
    ) -> Any: ...

    async def delete_one(self, filter: dict[str, Any], session: Any = None) -> Any: ...

    async def delete_many(self, filter: dict[str, Any], session: Any = None) -> Any: ...

    def find(
        self,
        filter: dict[str, Any],
        sort: SortSpec | None = None,
        skip: int | None = None,
        limit: int | None = None,
        projection: dict[str, Any] | None = None,
        session: Any = None,
    ) -> Any: ...

    def aggregate(self, pipeline: Sequence[dict[str, Any]], session: Any = None) -> Any: ...

    async def count_documents(self, filter: dict[str, Any], session: Any = None) -> int: ...

    async def create_indexes(self, indexes: Sequence[IndexModel], session: Any = None) -> list[str]: ...

    async def explain(
        self,
        filter: dict[str, Any],
        sort: SortSpec | None = None,
        skip: int | None = None,
        limit: int | None = None,
        projection: dict[str, Any] | None = None,
    ) -> dict[str, Any]: ...


def _session_kwargs(session: Any) -> dict[str, Any]:
    return {"session": session} if session is not None else {}


def _normalize_sort(sort: SortSpec | None) -> list[tuple[str, int]] | None:
    if not sort:
        return None
    if isinstance(sort, dict):
        return list(sort.items())
    return list(sort)


class MotorCollection:
    """``StoreCollection`` over a motor ``AsyncIOMotorCollection``.

    Results are the driver's own result objects (``inserted_id``,
    ``matched_count``, ``modified_count``, ``deleted_count``); cursors are
    returned unconsumed.
    """

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def raw(self) -> Any:
        return self._collection

    async def insert_one(self, document: dict[str, Any], session: Any = None) -> Any:
        return await self._collection.insert_one(document, **_session_kwargs(session))

    async def update_one(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        session: Any = None,
    ) -> Any:
        return await self._collection.update_one(
            filter, update, upsert=upsert, **_session_kwargs(session)
        )

    async def update_many(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
        upsert: bool = False,
        session: Any = None,
    ) -> Any:
        return await self._collection.update_many(
            filter, update, upsert=upsert, **_session_kwargs(session)
        )

    async def delete_one(self, filter: dict[str, Any], session: Any = None) -> Any:
        return await self._collection.delete_one(filter, **_session_kwargs(session))

    async def delete_many(self, filter: dict[str, Any], session: Any = None) -> Any:
        return await self._collection.delete_many(filter, **_session_kwargs(session))

    def find(
        self,
        filter: dict[str, Any],
        sort: SortSpec | None = None,
        skip: int | None = None,
        limit: int | None = None,
        projection: dict[str, Any] | None = None,
        session: Any = None,
    ) -> Any:
        kwargs: dict[str, Any] = _session_kwargs(session)
        normalized_sort = _normalize_sort(sort)
        if normalized_sort:
            kwargs["sort"] = normalized_sort
        if skip:
            kwargs["skip"] = skip
        if limit:
            kwargs["limit"] = limit
        if projection:
            kwargs["projection"] = projection
        return self._collection.find(filter, **kwargs)

    def aggregate(self, pipeline: Sequence[dict[str, Any]], session: Any = None) -> Any:
        return self._collection.aggregate(list(pipeline), **_session_kwargs(session))

    async def count_documents(self, filter: dict[str, Any], session: Any = None) -> int:
        return await self._collection.count_documents(filter, **_session_kwargs(session))

    async def create_indexes(self, indexes: Sequence[IndexModel], session: Any = None) -> list[str]:
        if not indexes:
            return []
        return await self._collection.create_indexes(list(indexes), **_session_kwargs(session))

    async def explain(
        self,
        filter: dict[str, Any],
        sort: SortSpec | None = None,
        skip: int | None = None,
        limit: int | None = None,
        projection: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        cursor = self.find(filter, sort=sort, skip=skip, limit=limit, projection=projection)
        return await cursor.explain()
