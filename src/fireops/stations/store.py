"""Async Cosmos DB operations for station documents.

Supports the three lookups used to resolve an inline station
descriptor: external place ID, exact coordinates, and name.
"""

import logging
from typing import ClassVar

from fireops.core.cosmos import CosmosStore
from fireops.core.errors import ConflictError
from fireops.stations.models import Station

logger = logging.getLogger(__name__)


class StationStore(CosmosStore):
    """Async CRUD for station documents in Cosmos DB.

    Usage::

        async with StationStore() as store:
            station = await store.find_by_place_id("ChIJ...")
    """

    CONTAINER_NAME = "stations"
    _memory: ClassVar[dict[str, dict]] = {}

    async def create(self, doc: Station) -> Station:
        """Create a station, enforcing unique call sign and place ID.

        Raises:
            ConflictError: If another station already uses the call sign or place ID
        """
        if doc.place_id and await self.find_by_place_id(doc.place_id):
            raise ConflictError(f"Station with place ID {doc.place_id!r} already exists")
        if doc.call_sign and await self._find_one("callSign", doc.call_sign):
            raise ConflictError(f"Station with call sign {doc.call_sign!r} already exists")

        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created station %s (in-memory)", doc.id)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created station %s", doc.id)
        return Station.from_cosmos(result)

    async def get_by_id(self, station_id: str) -> Station | None:
        """Get a station by ID, or None if it does not exist."""
        data = await self._read(station_id)
        return Station.from_cosmos(data) if data else None

    async def find_by_place_id(self, place_id: str) -> Station | None:
        """Find a station by exact external place ID."""
        return await self._find_one("placeId", place_id)

    async def find_by_coordinates(self, lat: float, lng: float) -> Station | None:
        """Find a station whose coordinates match exactly."""
        if self._in_memory:
            for data in self._memory.values():
                coords = data.get("coordinates") or {}
                if coords.get("lat") == lat and coords.get("lng") == lng:
                    return Station.from_cosmos(data)
            return None

        items = await self._query(
            "SELECT * FROM c WHERE c.coordinates.lat = @lat AND c.coordinates.lng = @lng",
            [{"name": "@lat", "value": lat}, {"name": "@lng", "value": lng}],
            max_items=1,
        )
        return Station.from_cosmos(items[0]) if items else None

    async def find_by_name(self, name: str) -> Station | None:
        """Find the first station whose name contains ``name``, ignoring case."""
        needle = name.strip().lower()
        if not needle:
            return None

        if self._in_memory:
            for data in sorted(self._memory.values(), key=lambda d: d.get("createdAt", "")):
                if needle in (data.get("name") or "").lower():
                    return Station.from_cosmos(data)
            return None

        items = await self._query(
            "SELECT * FROM c WHERE CONTAINS(c.name, @name, true) ORDER BY c.createdAt ASC",
            [{"name": "@name", "value": needle}],
            max_items=1,
        )
        return Station.from_cosmos(items[0]) if items else None

    async def list_all(self, *, max_items: int = 500) -> list[Station]:
        """List stations ordered by name."""
        if self._in_memory:
            results = [Station.from_cosmos(d) for d in self._memory.values()]
            results.sort(key=lambda s: (s.name or "").lower())
            return results[:max_items]

        items = await self._query("SELECT * FROM c ORDER BY c.name ASC", max_items=max_items)
        return [Station.from_cosmos(item) for item in items]

    async def _find_one(self, field: str, value: str) -> Station | None:
        if self._in_memory:
            for data in self._memory.values():
                if data.get(field) == value:
                    return Station.from_cosmos(data)
            return None

        items = await self._query(
            f"SELECT * FROM c WHERE c.{field} = @value",
            [{"name": "@value", "value": value}],
            max_items=1,
        )
        return Station.from_cosmos(items[0]) if items else None
