"""
Motor-backed document store.

Owns the driver client: connection lifecycle, sessions, database-level
commands (collection creation, ``collMod``) and ``MotorCollection``
handles. A pre-built client can be injected, which is how the test suite
plugs in mongomock-motor.
"""

from __future__ import annotations

from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import CollectionInvalid, PyMongoError

from docweave.core.config import StoreSettings
from docweave.core.exceptions import StoreConnectionError, WriteError
from docweave.infrastructure.logging import get_logger

from .collection import MotorCollection

logger = get_logger(__name__)


class MotorStore:
    """
    Connection and database-command collaborator.

    Usage:
        store = MotorStore(StoreSettings(uri="mongodb://localhost:27017"))
        await store.connect()
        users = store.collection("users")
        await store.disconnect()
    """

    def __init__(
        self,
        settings: StoreSettings | None = None,
        client: Any = None,
    ) -> None:
        self._settings = settings or StoreSettings()
        self._client = client
        self._owns_client = client is None
        self._collections: dict[str, MotorCollection] = {}

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise StoreConnectionError("Document store is not connected")
        return self._client

    @property
    def database(self) -> Any:
        return self.client[self._settings.database]

    async def connect(self) -> None:
        """Create the driver client (unless injected) and verify the server answers."""
        uri = self._settings.resolve_uri()
        if self._client is None:
            self._client = AsyncIOMotorClient(
                uri,
                serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
                appname=self._settings.app_name,
            )
            self._owns_client = True

        try:
            await self.ping()
        except PyMongoError as e:
            logger.error(f"Document store unreachable at {uri}: {e}")
            await self.disconnect()
            raise StoreConnectionError(f"Document store unreachable: {e}", uri=uri) from e

        logger.info_with_context(
            "Connected to document store",
            context={"database": self._settings.database},
        )

    async def ping(self) -> dict[str, Any]:
        return await self.client.admin.command("ping")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        if self._owns_client:
            self._client.close()
            self._client = None
        self._collections.clear()
        logger.info("Document store disconnected")

    def collection(self, name: str) -> MotorCollection:
        if name not in self._collections:
            self._collections[name] = MotorCollection(self.database[name])
        return self._collections[name]

    async def list_collection_names(self) -> list[str]:
        return await self.database.list_collection_names()

    async def ensure_collection(self, name: str) -> bool:
        """Create ``name`` if missing. Returns True when it was created."""
        if name in await self.list_collection_names():
            return False
        try:
            await self.database.create_collection(name)
        except CollectionInvalid:
            # created concurrently by another writer
            return False
        logger.debug(f"Created collection {name}")
        return True

    async def modify_schema(
        self,
        name: str,
        validator: dict[str, Any],
        validation_level: str = "strict",
        validation_action: str = "error",
    ) -> dict[str, Any]:
        """Attach a structural validator to a collection via ``collMod``."""
        command = {
            "collMod": name,
            "validator": validator,
            "validationLevel": validation_level,
            "validationAction": validation_action,
        }
        try:
            return await self.database.command(command)
        except PyMongoError as e:
            raise WriteError("collMod", filter={"collection": name}, cause=e) from e

    async def start_session(self) -> Any:
        return await self.client.start_session()
