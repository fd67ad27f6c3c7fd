"""
Tests for configuration loading and logging setup.
"""

import json
import logging
import subprocess
import sys

import pytest

from docweave.core.config import EngineConfig, SchemaSettings, load_config
from docweave.core.exceptions import ConfigurationError
from docweave.infrastructure.logging import (
    DocweaveLogger,
    LogContext,
    get_log_context,
    get_log_level,
    get_logger,
    log_context,
    set_log_level,
    setup_logging,
)


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.store.uri == "mongodb://localhost:27017"
        assert config.store.database == "docweave"
        assert config.schema_sync == SchemaSettings()
        assert config.schema_sync.validation_level == "strict"
        assert config.logging.level == "INFO"

    def test_from_dict_resolves_env_references(self, monkeypatch):
        monkeypatch.setenv("TEST_MONGO_URI", "mongodb://db:27017")

        config = EngineConfig.from_dict({"store": {"uri": "${TEST_MONGO_URI}"}})

        assert config.store.uri == "mongodb://db:27017"

    def test_unset_reference_is_kept(self, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        settings = EngineConfig.from_dict({"store": {"uri": "${NOT_SET_ANYWHERE}"}}).store
        assert settings.resolve_uri() == "${NOT_SET_ANYWHERE}"

    def test_invalid_values(self):
        with pytest.raises(ConfigurationError):
            EngineConfig.from_dict({"schema_sync": {"validation_level": "sometimes"}})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DOCWEAVE_DATABASE", "envdb")
        monkeypatch.setenv("DOCWEAVE_PUSH_VALIDATOR", "false")

        config = EngineConfig.from_env()

        assert config.store.database == "envdb"
        assert config.schema_sync.push_validator is False


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.yaml")

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "docweave.yaml"
        path.write_text(
            "store:\n"
            "  database: app\n"
            "schema_sync:\n"
            "  validation_action: warn\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.store.database == "app"
        assert config.schema_sync.validation_action == "warn"

    def test_json_file_with_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "docweave.json"
        path.write_text(json.dumps({"store": {"database": "app"}}), encoding="utf-8")
        monkeypatch.setenv("DOCWEAVE_DATABASE", "override")

        assert load_config(path).store.database == "override"

    def test_no_file(self, monkeypatch):
        monkeypatch.delenv("DOCWEAVE_DATABASE", raising=False)
        assert load_config().store.database == "docweave"


class TestLogging:
    """Tests for the logging helpers."""

    def test_get_logger_returns_context_logger(self):
        logger = get_logger("docweave.tests.sample")

        assert isinstance(logger, DocweaveLogger)
        assert get_logger("docweave.tests.sample") is logger

    def test_log_context_nests_and_resets(self):
        with log_context(model="User"):
            with log_context(operation="save"):
                assert get_log_context() == {"model": "User", "operation": "save"}
            assert get_log_context() == {"model": "User"}
        assert get_log_context() == {}

    def test_context_reaches_records(self, caplog):
        logger = get_logger("docweave.tests.context")

        with caplog.at_level(logging.DEBUG, logger="docweave"):
            with log_context(model="User"):
                logger.info_with_context("saved", context={"id": "1"})

        record = caplog.records[-1]
        assert record.getMessage() == "saved"
        assert record.context == {"model": "User", "id": "1"}

    def test_setup_and_set_level(self, tmp_path):
        log_file = tmp_path / "docweave.log"
        previous = get_log_level()
        try:
            setup_logging(level="debug", json_format=True, log_file=str(log_file))
            package_logger = logging.getLogger("docweave")

            assert get_log_level() == "DEBUG"
            assert package_logger.level == logging.DEBUG
            assert len(package_logger.handlers) == 2

            set_log_level("WARNING")
            assert all(h.level == logging.WARNING for h in package_logger.handlers)
        finally:
            package_logger = logging.getLogger("docweave")
            for handler in package_logger.handlers[:]:
                handler.close()
                package_logger.removeHandler(handler)
            set_log_level(previous)

    def test_log_context_class(self):
        with LogContext(collection="users") as ctx:
            assert ctx.get_context() == {"collection": "users"}
        assert LogContext.get_context() == {}

    def test_package_imports_in_fresh_interpreter(self):
        result = subprocess.run(
            [
                sys.executable,
                "-c",
                "import docweave\nfrom docweave.infrastructure.logging import get_logger\nget_logger('docweave.fresh')",
            ],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0, result.stderr

    def test_plain_logger_is_upgraded(self):
        name = "docweave.tests.plain"
        manager = logging.Logger.manager
        manager.loggerDict[name] = logging.Logger(name)
        try:
            logger = get_logger(name)

            assert isinstance(logger, DocweaveLogger)
            assert logger is manager.loggerDict[name]
            logger.debug_with_context("upgraded", context={"ok": True})
        finally:
            manager.loggerDict.pop(name, None)
