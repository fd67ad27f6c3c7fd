"""
Aggregation pipeline builder.

``PipelineStagesMixin`` holds the stage methods shared by
``AggregationBuilder`` and ``QueryBuilder``; each appends one store stage
in call order.

Usage:
    totals = await (
        orders.aggregate()
        .group({"_id": "$product", "total": {"$sum": {"$multiply": ["$quantity", "$price"]}}})
        .sort({"total": -1})
        .execute()
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from docweave.core.exceptions import AggregationError
from docweave.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from docweave.models.model import Model

logger = get_logger(__name__)

Stage = dict[str, Any]


class PipelineStagesMixin:
    """Stage methods. Expects ``self._stages: list[Stage]`` and ``self._model``."""

    _stages: list[Stage]
    _model: Model

    def _add_stage(self, operator: str, spec: Any):
        self._stages.append({operator: spec})
        return self

    def stage(self, stage: Stage):
        """Append a raw stage."""
        self._stages.append(dict(stage))
        return self

    def match(self, filter: dict[str, Any]):
        return self._add_stage("$match", self._model.store_filter(filter, apply_defaults=False))

    def group(self, spec: dict[str, Any]):
        return self._add_stage("$group", spec)

    def project(self, spec: dict[str, Any]):
        return self._add_stage("$project", spec)

    def lookup(
        self,
        from_: str | dict[str, Any],
        local_field: str | None = None,
        foreign_field: str | None = None,
        as_: str | None = None,
    ):
        if isinstance(from_, dict):
            return self._add_stage("$lookup", from_)
        return self._add_stage("$lookup", {
            "from": from_,
            "localField": local_field,
            "foreignField": foreign_field,
            "as": as_,
        })

    def unwind(self, path: str | dict[str, Any], preserve_null_and_empty_arrays: bool = False):
        if isinstance(path, dict):
            return self._add_stage("$unwind", path)
        if not path.startswith("$"):
            path = f"${path}"
        if preserve_null_and_empty_arrays:
            return self._add_stage("$unwind", {
                "path": path,
                "preserveNullAndEmptyArrays": True,
            })
        return self._add_stage("$unwind", path)

    def add_fields(self, spec: dict[str, Any]):
        return self._add_stage("$addFields", spec)

    def replace_root(self, new_root: str | dict[str, Any]):
        return self._add_stage("$replaceRoot", {"newRoot": new_root})

    def facet(self, spec: dict[str, list[Stage]]):
        return self._add_stage("$facet", spec)

    def bucket(
        self,
        group_by: str | dict[str, Any],
        boundaries: list[Any],
        default: Any = None,
        output: dict[str, Any] | None = None,
    ):
        spec: dict[str, Any] = {"groupBy": group_by, "boundaries": boundaries}
        if default is not None:
            spec["default"] = default
        if output:
            spec["output"] = output
        return self._add_stage("$bucket", spec)

    def graph_lookup(
        self,
        from_: str,
        start_with: str | dict[str, Any],
        connect_from_field: str,
        connect_to_field: str,
        as_: str,
        max_depth: int | None = None,
        depth_field: str | None = None,
    ):
        spec: dict[str, Any] = {
            "from": from_,
            "startWith": start_with,
            "connectFromField": connect_from_field,
            "connectToField": connect_to_field,
            "as": as_,
        }
        if max_depth is not None:
            spec["maxDepth"] = max_depth
        if depth_field:
            spec["depthField"] = depth_field
        return self._add_stage("$graphLookup", spec)

    def merge(self, into: str | dict[str, Any], **options: Any):
        spec: dict[str, Any] = {"into": into}
        for key, value in options.items():
            spec[_camel(key)] = value
        return self._add_stage("$merge", spec)

    def redact(self, expression: dict[str, Any]):
        return self._add_stage("$redact", expression)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class AggregationBuilder(PipelineStagesMixin):
    """Builds and runs an aggregation pipeline against one model's collection."""

    def __init__(self, model: Model) -> None:
        self._model = model
        self._stages: list[Stage] = []

    @property
    def pipeline(self) -> list[Stage]:
        return list(self._stages)

    def sort(self, spec: dict[str, int]):
        return self._add_stage("$sort", spec)

    def count(self, field: str = "count"):
        return self._add_stage("$count", field)

    def limit(self, n: int):
        return self._add_stage("$limit", n)

    def skip(self, n: int):
        return self._add_stage("$skip", n)

    async def execute(self, session: Any = None) -> list[dict[str, Any]]:
        """Run the pipeline; results are returned as the store produced them."""
        if not self._stages:
            raise AggregationError("Aggregation pipeline cannot be empty", pipeline=[])
        return await self._model.run_pipeline(self._stages, session=session)
