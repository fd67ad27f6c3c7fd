"""
Engine configuration.

Settings come from three places, later ones winning:
- defaults declared on the models below
- a YAML or JSON file (``${VAR}`` values are resolved from the environment)
- ``DOCWEAVE_*`` environment variables

Usage:
    from docweave.core import load_config

    config = load_config("docweave.yaml")
    client = DocumentClient(config)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOCWEAVE_"


class StoreSettings(BaseModel):
    """Connection settings for the document store."""

    uri: str = Field(
        default="mongodb://localhost:27017",
        description="Store connection URI",
    )
    database: str = Field(default="docweave", description="Database name")
    server_selection_timeout_ms: int = Field(
        default=5000,
        description="How long to wait for a reachable server",
    )
    app_name: str = Field(default="docweave", description="Client app name")

    def resolve_uri(self) -> str:
        """Resolve URI from environment variable if needed."""
        return _resolve_env_reference(self.uri)


class SchemaSettings(BaseModel):
    """How field declarations are pushed to the store."""

    auto_sync: bool = Field(
        default=True,
        description="Sync validator and indexes before every save",
    )
    push_validator: bool = Field(
        default=True,
        description="Issue collMod with the derived $jsonSchema validator",
    )
    create_indexes: bool = Field(default=True, description="Create declared indexes")
    validation_level: Literal["off", "strict", "moderate"] = Field(default="strict")
    validation_action: Literal["error", "warn"] = Field(default="error")


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = Field(default="INFO", description="Log level")
    json_format: bool = Field(default=False, description="Emit JSON lines")
    log_file: str | None = Field(default=None, description="Optional log file path")


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    store: StoreSettings = Field(default_factory=StoreSettings)
    schema_sync: SchemaSettings = Field(default_factory=SchemaSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Create from dictionary, resolving ``${VAR}`` references."""
        try:
            return cls.model_validate(_resolve_tree(data))
        except ValueError as e:
            raise ConfigurationError(f"Invalid engine configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> EngineConfig:
        """Load configuration from YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> EngineConfig:
        """Build a configuration from environment variables only."""
        data: dict[str, Any] = {}
        _apply_env_overrides(data, prefix)
        return cls.from_dict(data)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = ENV_PREFIX,
) -> EngineConfig:
    """
    Load configuration from file and environment.

    Args:
        config_path: Path to config file (YAML or JSON)
        env_prefix: Environment variable prefix

    Returns:
        Loaded configuration
    """
    config_data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}", config_key="config_path")
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                config_data = yaml.safe_load(f) or {}
            elif path.suffix == ".json":
                config_data = json.load(f)
            else:
                logger.warning(f"Unknown config format: {path.suffix}")

    _apply_env_overrides(config_data, env_prefix)

    return EngineConfig.from_dict(config_data)


def _apply_env_overrides(config: dict[str, Any], prefix: str) -> None:
    """Apply environment variable overrides to config."""
    env_mappings = {
        f"{prefix}MONGO_URI": ("store", "uri"),
        f"{prefix}DATABASE": ("store", "database"),
        f"{prefix}LOG_LEVEL": ("logging", "level"),
        f"{prefix}LOG_JSON": ("logging", "json_format"),
        f"{prefix}PUSH_VALIDATOR": ("schema_sync", "push_validator"),
        f"{prefix}AUTO_SYNC": ("schema_sync", "auto_sync"),
    }

    for env_var, config_path in env_mappings.items():
        value = os.environ.get(env_var)
        if value:
            section, key = config_path
            config.setdefault(section, {})[key] = value


def _resolve_env_reference(value: str) -> str:
    if value.startswith("${") and value.endswith("}"):
        return os.environ.get(value[2:-1], value)
    return value


def _resolve_tree(data: Any) -> Any:
    if isinstance(data, dict):
        return {k: _resolve_tree(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_tree(v) for v in data]
    if isinstance(data, str):
        return _resolve_env_reference(data)
    return data
