"""
Model registry.

An explicit name -> Model map handed to every model that needs to reach
another one (population, relationship integrity, cascades).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

from docweave.core.exceptions import ConfigurationError, RelationshipError
from docweave.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from .model import Model

logger = get_logger(__name__)


class ModelRegistry:
    """Registry of models by name."""

    def __init__(self) -> None:
        self._models: dict[str, Model] = {}

    def register(self, model: Model, replace: bool = False) -> Model:
        if model.name in self._models and not replace:
            raise ConfigurationError(
                f"Model already registered: {model.name}",
                config_key=model.name,
            )
        self._models[model.name] = model
        logger.debug(f"Registered model: {model.name} -> {model.collection_name}")
        return model

    def get(self, name: str) -> Model:
        try:
            return self._models[name]
        except KeyError:
            raise RelationshipError(f"Model not found: {name}") from None

    def find(self, name: str) -> Model | None:
        return self._models.get(name)

    def names(self) -> list[str]:
        return list(self._models)

    def __contains__(self, name: object) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[Model]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)
