"""Async Cosmos DB connection handling shared by all document stores.

When ``COSMOS_ENDPOINT`` is not set, stores fall back to an in-memory
dict for local development and testing.
"""

import logging
import os
from typing import Any, ClassVar, Self

from dotenv import load_dotenv

from fireops.core.config import get_cosmos_database

logger = logging.getLogger(__name__)


class CosmosStore:
    """Base class for async Cosmos DB stores with in-memory fallback.

    Subclasses set ``CONTAINER_NAME`` and declare their own ``_memory``
    dict so each container keeps separate in-memory data.

    Usage::

        async with UnitStore() as store:
            unit = await store.get_by_id(unit_id)
    """

    CONTAINER_NAME: ClassVar[str] = ""

    # Shared in-memory store across instances (persists for server lifetime)
    _memory: ClassVar[dict[str, dict]] = {}

    def __init__(self) -> None:
        """Initialize store. Call ``__aenter__`` to connect."""
        self._client = None
        self._container = None
        self._credential = None
        self._in_memory = False

    async def __aenter__(self) -> Self:
        """Connect to Cosmos DB, or fall back to in-memory mode."""
        load_dotenv()

        endpoint = os.getenv("COSMOS_ENDPOINT")
        key = os.getenv("COSMOS_KEY")

        if key:
            from azure.cosmos.aio import CosmosClient

            self._client = CosmosClient(endpoint, credential=key)
        elif endpoint:
            from azure.cosmos.aio import CosmosClient
            from azure.identity.aio import DefaultAzureCredential

            self._credential = DefaultAzureCredential()
            self._client = CosmosClient(endpoint, credential=self._credential)
        else:
            logger.warning(
                "No COSMOS_ENDPOINT set, using in-memory %s store (dev only)",
                self.CONTAINER_NAME,
            )
            self._in_memory = True
            return self

        database = self._client.get_database_client(get_cosmos_database())
        self._container = database.get_container_client(self.CONTAINER_NAME)
        logger.info("Connected to Cosmos DB: %s/%s", get_cosmos_database(), self.CONTAINER_NAME)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close connections."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
        self._container = None

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    async def _read(self, item_id: str) -> dict | None:
        """Point-read a document by ID (the partition key is ``/id``)."""
        if self._in_memory:
            data = self._memory.get(item_id)
            return dict(data) if data else None

        from azure.cosmos.exceptions import CosmosResourceNotFoundError

        try:
            return await self._container.read_item(item=item_id, partition_key=item_id)
        except CosmosResourceNotFoundError:
            logger.debug("%s not found: %s", self.CONTAINER_NAME, item_id)
            return None

    async def _query(
        self,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        *,
        max_items: int | None = None,
    ) -> list[dict]:
        """Run a cross-partition SQL query and collect the results."""
        items: list[dict] = []
        async for item in self._container.query_items(
            query=query,
            parameters=parameters or None,
        ):
            items.append(item)
            if max_items is not None and len(items) >= max_items:
                break
        return items

    async def _delete(self, item_id: str) -> bool:
        """Delete a document by ID. Returns False if it did not exist."""
        if self._in_memory:
            return self._memory.pop(item_id, None) is not None

        from azure.cosmos.exceptions import CosmosResourceNotFoundError

        try:
            await self._container.delete_item(item=item_id, partition_key=item_id)
        except CosmosResourceNotFoundError:
            return False
        return True
