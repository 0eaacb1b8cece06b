"""Async Cosmos DB operations for unit documents and department duty slots.

Duty slots close the gap between "is another unit active?" and "mark
this unit active": each department has at most one slot document,
keyed by department ID, and claiming it is an atomic create.
"""

import logging
from typing import ClassVar, Self

from fireops.core.cosmos import CosmosStore
from fireops.core.errors import ConflictError
from fireops.core.models import utcnow
from fireops.units.models import DutySlot, Unit

logger = logging.getLogger(__name__)
SLOT_CONTAINER_NAME = "duty-slots"


class UnitStore(CosmosStore):
    """Async CRUD for units plus duty slot claims.

    Usage::

        async with UnitStore() as store:
            active = await store.find_active_in_department(dept_id)
            holder = await store.claim_duty_slot(dept_id, unit.id)
    """

    CONTAINER_NAME = "units"
    _memory: ClassVar[dict[str, dict]] = {}
    _slot_memory: ClassVar[dict[str, dict]] = {}

    def __init__(self) -> None:
        super().__init__()
        self._slots = None

    async def __aenter__(self) -> Self:
        await super().__aenter__()
        if not self._in_memory:
            from fireops.core.config import get_cosmos_database

            database = self._client.get_database_client(get_cosmos_database())
            self._slots = database.get_container_client(SLOT_CONTAINER_NAME)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._slots = None
        await super().__aexit__(exc_type, exc_val, exc_tb)

    # ------------------------------------------------------------------
    # Core CRUD
    # ------------------------------------------------------------------

    async def create(self, doc: Unit) -> Unit:
        """Create a unit.

        Raises:
            ConflictError: If the department already has a unit with this name
        """
        if await self.find_by_name(doc.department, doc.name):
            raise ConflictError(
                "Unit name already exists for this department",
                name=doc.name,
                department=doc.department,
            )

        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created unit %s (in-memory, department=%s)", doc.id, doc.department)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created unit %s (department=%s)", doc.id, doc.department)
        return Unit.from_cosmos(result)

    async def get_by_id(self, unit_id: str) -> Unit | None:
        """Get a unit by ID, or None if it does not exist."""
        data = await self._read(unit_id)
        return Unit.from_cosmos(data) if data else None

    async def update(self, doc: Unit) -> Unit:
        """Replace an existing unit document, stamping ``updated_at``."""
        doc.updated_at = utcnow()
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Updated unit %s (in-memory)", doc.id)
            return doc

        result = await self._container.replace_item(item=doc.id, body=doc.to_cosmos())
        logger.info("Updated unit %s", doc.id)
        return Unit.from_cosmos(result)

    async def delete(self, unit_id: str) -> bool:
        """Delete a unit. Returns False if it did not exist."""
        deleted = await self._delete(unit_id)
        if deleted:
            logger.info("Deleted unit %s", unit_id)
        return deleted

    async def find_by_name(self, department_id: str, name: str) -> Unit | None:
        """Find a unit in a department by exact name."""
        if self._in_memory:
            for data in self._memory.values():
                if data.get("department") == department_id and data.get("name") == name:
                    return Unit.from_cosmos(data)
            return None

        items = await self._query(
            "SELECT * FROM c WHERE c.department = @department AND c.name = @name",
            [
                {"name": "@department", "value": department_id},
                {"name": "@name", "value": name},
            ],
            max_items=1,
        )
        return Unit.from_cosmos(items[0]) if items else None

    async def list_units(
        self,
        *,
        department_id: str | None = None,
        active: bool | None = None,
        max_items: int | None = 500,
    ) -> list[Unit]:
        """List units, optionally filtered by department and/or active flag.

        Args:
            max_items: Result cap, or None for every matching unit

        Returns:
            Matching units sorted by name
        """
        if self._in_memory:
            results = []
            for data in self._memory.values():
                if department_id and data.get("department") != department_id:
                    continue
                if active is not None and bool(data.get("isActive")) != active:
                    continue
                results.append(Unit.from_cosmos(data))
            results.sort(key=lambda u: u.name.lower())
            return results[:max_items]

        conditions = []
        parameters = []
        if department_id:
            conditions.append("c.department = @department")
            parameters.append({"name": "@department", "value": department_id})
        if active is not None:
            conditions.append("c.isActive = @active")
            parameters.append({"name": "@active", "value": active})

        where_clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        items = await self._query(
            f"SELECT * FROM c{where_clause} ORDER BY c.name ASC",
            parameters,
            max_items=max_items,
        )
        return [Unit.from_cosmos(item) for item in items]

    async def find_active_in_department(
        self, department_id: str, *, exclude_unit_id: str | None = None
    ) -> Unit | None:
        """Find an active unit in the department other than ``exclude_unit_id``."""
        for unit in await self.list_units(department_id=department_id, active=True):
            if unit.id != exclude_unit_id:
                return unit
        return None

    # ------------------------------------------------------------------
    # Duty slots
    # ------------------------------------------------------------------

    async def get_duty_slot(self, department_id: str) -> DutySlot | None:
        """Read the department's duty slot, or None if unclaimed."""
        if self._in_memory:
            data = self._slot_memory.get(department_id)
            return DutySlot.model_validate(data) if data else None

        from azure.cosmos.exceptions import CosmosResourceNotFoundError

        try:
            data = await self._slots.read_item(item=department_id, partition_key=department_id)
        except CosmosResourceNotFoundError:
            return None
        return DutySlot.model_validate(data)

    async def claim_duty_slot(
        self,
        department_id: str,
        unit_id: str,
        *,
        replace_holder: str | None = None,
    ) -> str:
        """Claim the department's duty slot for ``unit_id``.

        Creating the slot is atomic: of two concurrent claims for
        different units only one wins. When ``replace_holder`` is given,
        a slot currently held by that unit is taken over instead.

        Args:
            department_id: Department whose slot to claim
            unit_id: Unit claiming the slot
            replace_holder: Unit ID of a stale holder that may be displaced

        Returns:
            The unit ID holding the slot after the attempt. Equal to
            ``unit_id`` when the claim succeeded.
        """
        slot = DutySlot(id=department_id, unit_id=unit_id)

        if self._in_memory:
            current = self._slot_memory.get(department_id)
            if current is None or current["unitId"] in (unit_id, replace_holder):
                self._slot_memory[department_id] = slot.to_cosmos()
                return unit_id
            return current["unitId"]

        from azure.core import MatchConditions
        from azure.cosmos.exceptions import (
            CosmosAccessConditionFailedError,
            CosmosResourceExistsError,
        )

        try:
            await self._slots.create_item(body=slot.to_cosmos())
            return unit_id
        except CosmosResourceExistsError:
            pass

        current = await self._slots.read_item(item=department_id, partition_key=department_id)
        if current["unitId"] not in (unit_id, replace_holder):
            return current["unitId"]

        try:
            await self._slots.replace_item(
                item=department_id,
                body=slot.to_cosmos(),
                etag=current["_etag"],
                match_condition=MatchConditions.IfNotModified,
            )
        except CosmosAccessConditionFailedError:
            latest = await self.get_duty_slot(department_id)
            return latest.unit_id if latest else ""
        return unit_id

    async def release_duty_slot(self, department_id: str, unit_id: str) -> None:
        """Release the department's duty slot if ``unit_id`` holds it."""
        current = await self.get_duty_slot(department_id)
        if current is None or current.unit_id != unit_id:
            return

        if self._in_memory:
            self._slot_memory.pop(department_id, None)
            return

        from azure.cosmos.exceptions import CosmosResourceNotFoundError

        try:
            await self._slots.delete_item(item=department_id, partition_key=department_id)
        except CosmosResourceNotFoundError:
            logger.debug("Duty slot already released: %s", department_id)
