"""Unit administration: create, read, update and delete units.

Duty state (``isActive`` / ``activatedAt``) is never editable here;
use :mod:`fireops.units.roster` for that.
"""

import logging

import pydantic

from fireops.core.config import get_org_config
from fireops.core.errors import ConflictError, NotFoundError, ValidationError, from_pydantic
from fireops.core.models import is_valid_id
from fireops.departments.models import Department
from fireops.departments.store import DepartmentStore
from fireops.units.models import Unit
from fireops.units.store import UnitStore

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"name", "color", "department", "groupNames", "shift"}


async def _require_department(department_id: object) -> Department:
    if not is_valid_id(department_id):
        raise ValidationError("Invalid department ID format")
    async with DepartmentStore() as store:
        department = await store.get_by_id(department_id)
    if department is None:
        raise NotFoundError("Department not found", departmentId=department_id)
    return department


def _check_shift(unit: Unit, department: Department) -> None:
    """Units in the operations department must have a shift."""
    if department.is_named(get_org_config().operations_department) and not unit.shift:
        raise ValidationError(f"Shift is required for units in the {department.name} department")


async def create_unit(payload: dict) -> dict:
    """Create a unit in an existing department.

    Args:
        payload: ``name`` and ``department`` required; ``color``,
            ``groupNames`` and ``shift`` optional

    Raises:
        ValidationError: Missing fields, bad IDs, or missing shift for operations
        NotFoundError: If the department does not exist
        ConflictError: If the department already has a unit with this name
    """
    if not payload.get("name") or not payload.get("department"):
        raise ValidationError("Unit name and department are required")

    department = await _require_department(payload["department"])
    try:
        unit = Unit(
            name=payload["name"],
            department=department.id,
            color=payload.get("color") or "#000000",
            group_names=payload.get("groupNames") or [],
            shift=payload.get("shift"),
        )
    except pydantic.ValidationError as e:
        raise from_pydantic(e) from e
    _check_shift(unit, department)

    async with UnitStore() as store:
        created = await store.create(unit)

    logger.info("Created unit %s in department %s", created.id, department.name)
    return created.to_api()


async def get_unit(unit_id: str) -> dict:
    """Get a unit with its department expanded."""
    async with UnitStore() as units, DepartmentStore() as departments:
        unit = await units.get_by_id(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", unitId=unit_id)
        department = await departments.get_by_id(unit.department)

    data = unit.to_api()
    data["department"] = department.summary() if department else {"id": unit.department}
    return data


async def list_units(department_id: str | None = None) -> list[dict]:
    """List units, optionally for one department, sorted by name."""
    async with UnitStore() as store:
        units = await store.list_units(department_id=department_id)
    return [u.to_api() for u in units]


async def update_unit(unit_id: str, patch: dict) -> dict:
    """Update a unit's administrative fields.

    Moving an active unit to another department is rejected, since the
    department's duty slot is tied to the unit.

    Raises:
        ValidationError: Unknown fields or invalid values
        NotFoundError: If the unit or the new department does not exist
        ConflictError: Renaming onto an existing unit, or moving an active unit
    """
    unknown = set(patch) - _EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    async with UnitStore() as store:
        unit = await store.get_by_id(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", unitId=unit_id)

        department_id = patch.get("department", unit.department)
        if department_id != unit.department and unit.is_active:
            raise ConflictError("An active unit cannot move to another department")
        department = await _require_department(department_id)

        try:
            updated = Unit.model_validate({**unit.to_cosmos(), **patch})
        except pydantic.ValidationError as e:
            raise from_pydantic(e) from e
        _check_shift(updated, department)

        if (updated.name, updated.department) != (unit.name, unit.department):
            existing = await store.find_by_name(updated.department, updated.name)
            if existing is not None and existing.id != unit.id:
                raise ConflictError("Unit name already exists for this department")

        saved = await store.update(updated)

    logger.info("Updated unit %s (%s)", saved.id, ", ".join(sorted(patch)))
    return saved.to_api()


async def delete_unit(unit_id: str) -> None:
    """Delete a unit, releasing its duty slot if it was on duty.

    Raises:
        NotFoundError: If the unit does not exist
    """
    async with UnitStore() as store:
        unit = await store.get_by_id(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", unitId=unit_id)
        if unit.is_active:
            logger.warning("Deleting unit %s while it is on duty", unit.id)
        await store.delete(unit.id)
        await store.release_duty_slot(unit.department, unit.id)
