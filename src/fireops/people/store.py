"""Async Cosmos DB operations for users and fire personnel.

The report resolver only needs existence probes by ID; personnel can
also be listed by station to find units working out of it.
"""

import logging
from typing import ClassVar

from fireops.core.cosmos import CosmosStore
from fireops.people.models import FirePersonnel, User

logger = logging.getLogger(__name__)


class UserStore(CosmosStore):
    """Async access to user documents."""

    CONTAINER_NAME = "users"
    _memory: ClassVar[dict[str, dict]] = {}

    async def create(self, doc: User) -> User:
        """Create a new user document."""
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created user %s (in-memory)", doc.id)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created user %s", doc.id)
        return User.from_cosmos(result)

    async def get_by_id(self, user_id: str) -> User | None:
        """Get a user by ID, or None if it does not exist."""
        data = await self._read(user_id)
        return User.from_cosmos(data) if data else None


class PersonnelStore(CosmosStore):
    """Async access to fire personnel documents."""

    CONTAINER_NAME = "fire-personnel"
    _memory: ClassVar[dict[str, dict]] = {}

    async def create(self, doc: FirePersonnel) -> FirePersonnel:
        """Create a new fire personnel document."""
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created fire personnel %s (in-memory)", doc.id)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created fire personnel %s", doc.id)
        return FirePersonnel.from_cosmos(result)

    async def get_by_id(self, personnel_id: str) -> FirePersonnel | None:
        """Get a personnel record by ID, or None if it does not exist."""
        data = await self._read(personnel_id)
        return FirePersonnel.from_cosmos(data) if data else None

    async def get_many(self, personnel_ids: list[str]) -> list[FirePersonnel]:
        """Get personnel records for the given IDs, skipping missing ones.

        Order follows ``personnel_ids``.
        """
        results = []
        for personnel_id in personnel_ids:
            doc = await self.get_by_id(personnel_id)
            if doc is not None:
                results.append(doc)
        return results

    async def unit_ids_at_station(self, station_id: str) -> set[str]:
        """Distinct unit IDs of personnel stationed at ``station_id``."""
        if self._in_memory:
            return {
                data["unit"]
                for data in self._memory.values()
                if data.get("stationId") == station_id and data.get("unit")
            }

        items = await self._query(
            "SELECT DISTINCT VALUE c.unit FROM c "
            "WHERE c.stationId = @station AND IS_DEFINED(c.unit)",
            [{"name": "@station", "value": station_id}],
        )
        return {unit for unit in items if unit}
