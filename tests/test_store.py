"""
Tests for the motor store wrapper and DocumentClient.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo import IndexModel
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from docweave import DocumentClient, EngineConfig
from docweave.core.config import StoreSettings
from docweave.core.exceptions import (
    ConfigurationError,
    RelationshipError,
    StoreConnectionError,
    WriteError,
)
from docweave.infrastructure.store import MotorCollection, MotorStore


@pytest.fixture
def driver():
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    database = MagicMock()
    database.command = AsyncMock(return_value={"ok": 1})
    database.list_collection_names = AsyncMock(return_value=["existing"])
    database.create_collection = AsyncMock()
    client.__getitem__.return_value = database
    return client


class TestMotorStore:
    """Tests for MotorStore."""

    @pytest.mark.asyncio
    async def test_connect_pings(self, driver):
        store = MotorStore(StoreSettings(database="app"), client=driver)

        await store.connect()

        driver.admin.command.assert_awaited_once_with("ping")
        driver.__getitem__.assert_not_called()
        assert store.is_connected

    @pytest.mark.asyncio
    async def test_unreachable_store(self, driver):
        driver.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        store = MotorStore(StoreSettings(uri="mongodb://nowhere:27017"), client=driver)

        with pytest.raises(StoreConnectionError) as exc_info:
            await store.connect()
        assert exc_info.value.details["uri"] == "mongodb://nowhere:27017"

    def test_client_required(self):
        with pytest.raises(StoreConnectionError):
            MotorStore().collection("users")

    @pytest.mark.asyncio
    async def test_ensure_collection(self, driver):
        store = MotorStore(client=driver)
        database = driver["docweave"]

        assert await store.ensure_collection("existing") is False
        assert await store.ensure_collection("fresh") is True
        database.create_collection.assert_awaited_once_with("fresh")

    @pytest.mark.asyncio
    async def test_modify_schema_command(self, driver):
        store = MotorStore(client=driver)
        validator = {"$jsonSchema": {"bsonType": "object"}}

        await store.modify_schema("users", validator, validation_action="warn")

        driver["docweave"].command.assert_awaited_once_with({
            "collMod": "users",
            "validator": validator,
            "validationLevel": "strict",
            "validationAction": "warn",
        })

    @pytest.mark.asyncio
    async def test_modify_schema_failure(self, driver):
        driver["docweave"].command = AsyncMock(side_effect=OperationFailure("no collMod"))
        store = MotorStore(client=driver)

        with pytest.raises(WriteError) as exc_info:
            await store.modify_schema("users", {})
        assert exc_info.value.operation == "collMod"

    def test_collection_handles_are_cached(self, driver):
        store = MotorStore(client=driver)
        assert store.collection("users") is store.collection("users")


class TestMotorCollection:
    """Tests for the driver-facing keyword translation."""

    @pytest.fixture
    def raw(self):
        raw = MagicMock()
        raw.name = "users"
        raw.create_indexes = AsyncMock(return_value=["email_1"])
        return raw

    def test_find_passes_only_given_options(self, raw):
        collection = MotorCollection(raw)

        collection.find({"a": 1}, sort={"a": -1}, limit=5)

        raw.find.assert_called_once_with({"a": 1}, sort=[("a", -1)], limit=5)

    def test_find_with_session(self, raw):
        session = object()
        MotorCollection(raw).find({}, session=session)
        raw.find.assert_called_once_with({}, session=session)

    @pytest.mark.asyncio
    async def test_create_indexes(self, raw):
        collection = MotorCollection(raw)
        indexes = [IndexModel([("email", 1)], unique=True)]

        assert await collection.create_indexes([]) == []
        assert await collection.create_indexes(indexes) == ["email_1"]
        raw.create_indexes.assert_awaited_once_with(indexes)

    @pytest.mark.asyncio
    async def test_explain_uses_cursor(self, raw):
        raw.find.return_value.explain = AsyncMock(return_value={"queryPlanner": {}})

        plan = await MotorCollection(raw).explain({"a": 1}, skip=2)

        assert plan == {"queryPlanner": {}}
        raw.find.assert_called_once_with({"a": 1}, skip=2)


class TestDocumentClient:
    """Tests for DocumentClient."""

    def test_model_registration(self, client):
        users = client.model("User", collection_name="users")

        assert client.get_model("User") is users
        assert users.collection_name == "users"
        assert users.registry is client.registry

    def test_default_collection_name(self, client):
        assert client.model("Invoice").collection_name == "invoice"

    def test_duplicate_model(self, client):
        client.model("User")
        with pytest.raises(ConfigurationError):
            client.model("User")

    def test_unknown_model(self, client):
        with pytest.raises(RelationshipError):
            client.get_model("Nobody")

    @pytest.mark.asyncio
    async def test_context_manager_connects(self, driver):
        async with DocumentClient(EngineConfig(), client=driver) as client:
            assert client.store.is_connected
        driver.admin.command.assert_awaited_once_with("ping")

    @pytest.mark.asyncio
    async def test_transaction(self, driver):
        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        transaction = MagicMock()
        transaction.__aenter__ = AsyncMock(return_value=transaction)
        transaction.__aexit__ = AsyncMock(return_value=False)
        session.start_transaction = MagicMock(return_value=transaction)
        driver.start_session = AsyncMock(return_value=session)

        client = DocumentClient(client=driver)
        async with client.transaction() as active:
            assert active is session

        session.start_transaction.assert_called_once()
        transaction.__aexit__.assert_awaited_once()
        session.__aexit__.assert_awaited_once()
