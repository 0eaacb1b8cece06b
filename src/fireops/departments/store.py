"""Async Cosmos DB operations for department documents."""

import logging
from typing import ClassVar

from fireops.core.cosmos import CosmosStore
from fireops.core.errors import ConflictError
from fireops.departments.models import Department

logger = logging.getLogger(__name__)


class DepartmentStore(CosmosStore):
    """Async read access to departments, plus create for seeding.

    Department names are unique, ignoring case.
    """

    CONTAINER_NAME = "departments"
    _memory: ClassVar[dict[str, dict]] = {}

    async def create(self, doc: Department) -> Department:
        """Create a department.

        Raises:
            ConflictError: If a department with this name (ignoring case) exists
        """
        if await self.find_by_name(doc.name):
            raise ConflictError(f"Department {doc.name!r} already exists")

        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created department %s (in-memory)", doc.id)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created department %s", doc.id)
        return Department.from_cosmos(result)

    async def get_by_id(self, department_id: str) -> Department | None:
        """Get a department by ID, or None if it does not exist."""
        data = await self._read(department_id)
        return Department.from_cosmos(data) if data else None

    async def find_by_name(self, name: str) -> Department | None:
        """Find a department by exact name, ignoring case."""
        if self._in_memory:
            for data in self._memory.values():
                doc = Department.from_cosmos(data)
                if doc.is_named(name):
                    return doc
            return None

        items = await self._query(
            "SELECT * FROM c WHERE LOWER(c.name) = @name",
            [{"name": "@name", "value": name.strip().lower()}],
            max_items=1,
        )
        return Department.from_cosmos(items[0]) if items else None
