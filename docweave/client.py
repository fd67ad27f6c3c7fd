"""
Document client.

Entry point tying configuration, the store connection and the model
registry together.

Usage:
    client = DocumentClient(load_config("docweave.yaml"))
    await client.connect()

    users = client.model("User", collection_name="users")
    users.add_field(FieldBuilder("email").type(str).required().unique())

    async with client.transaction() as session:
        await users.save({"email": "ada@example.com"}, session=session)

    await client.disconnect()
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from docweave.core.config import EngineConfig
from docweave.infrastructure.logging import get_logger, setup_logging
from docweave.infrastructure.store import MotorStore
from docweave.models.model import Model
from docweave.models.registry import ModelRegistry

logger = get_logger(__name__)


class DocumentClient:
    """Owns the store connection and every model built through it."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        client: Any = None,
        configure_logging: bool = False,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = MotorStore(self.config.store, client=client)
        self.registry = ModelRegistry()

        if configure_logging:
            setup_logging(
                level=self.config.logging.level,
                json_format=self.config.logging.json_format,
                log_file=self.config.logging.log_file,
            )

    async def connect(self) -> DocumentClient:
        await self.store.connect()
        return self

    async def disconnect(self) -> None:
        await self.store.disconnect()

    async def __aenter__(self) -> DocumentClient:
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    def model(self, name: str, collection_name: str | None = None) -> Model:
        """Create a model bound to this client's store and register it."""
        model = Model(
            name,
            store=self.store,
            collection_name=collection_name,
            registry=self.registry,
            schema_settings=self.config.schema_sync,
        )
        return self.registry.register(model)

    def get_model(self, name: str) -> Model:
        return self.registry.get(name)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        """
        Session with an open transaction, committed on clean exit and
        aborted when the block raises.
        """
        async with await self.store.start_session() as session:
            async with session.start_transaction():
                logger.debug("Transaction started")
                yield session
