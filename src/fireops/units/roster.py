"""Duty roster: on/off-duty transitions for units.

State per unit::

    INACTIVE --activate--> ACTIVE --deactivate (after release cutoff)--> INACTIVE
                                  --sweep (after force cutoff)---------> INACTIVE

Rules:
- Only units in the operations department can go on duty.
- At most one unit per department is active. The check is a read
  followed by an atomic duty slot claim, so two concurrent activations
  for different units cannot both succeed.
- A unit activated on day D may be taken off duty manually from
  ``duty_release_hour`` (07:00) on day D+1. The sweep forces it off
  from ``duty_sweep_hour`` (08:00) on day D+1.
- Activating the unit that already holds duty is allowed and refreshes
  ``activated_at``.

All times are evaluated in the organization timezone.
"""

import logging
from datetime import datetime, time, timedelta

from fireops.core.config import get_org_config, get_timezone, local_now
from fireops.core.errors import ConflictError, InvalidStateError, NotFoundError, TooEarlyError
from fireops.departments.store import DepartmentStore
from fireops.units.models import SweepResult, Unit
from fireops.units.store import UnitStore

logger = logging.getLogger(__name__)

# A slot claim whose unit never became active is abandoned after this long
STALE_SLOT_AFTER = timedelta(seconds=60)


def _aware(value: datetime) -> datetime:
    """Attach the org timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.replace(tzinfo=get_timezone())
    return value


def _next_day_at(activated_at: datetime, hour: int) -> datetime:
    tz = get_timezone()
    activation_day = _aware(activated_at).astimezone(tz).date()
    return datetime.combine(activation_day + timedelta(days=1), time(hour), tzinfo=tz)


def release_cutoff(activated_at: datetime) -> datetime:
    """Earliest time a unit activated at ``activated_at`` may be deactivated manually."""
    return _next_day_at(activated_at, get_org_config().duty_release_hour)


def force_cutoff(activated_at: datetime) -> datetime:
    """Time from which the sweep deactivates a unit activated at ``activated_at``."""
    return _next_day_at(activated_at, get_org_config().duty_sweep_hour)


async def _is_stale_holder(
    store: UnitStore, department_id: str, holder_id: str, now: datetime
) -> bool:
    """Check whether a duty slot holder can be displaced.

    The holder is stale when its unit was deleted, or when it is not
    active and claimed the slot long enough ago that its activation
    cannot still be in flight.
    """
    if not holder_id:
        return False
    holder = await store.get_by_id(holder_id)
    if holder is None:
        return True
    if holder.is_active:
        return False
    slot = await store.get_duty_slot(department_id)
    return slot is not None and now - _aware(slot.claimed_at) >= STALE_SLOT_AFTER


async def _conflict(store: UnitStore, blocking_id: str) -> ConflictError:
    blocking = await store.get_by_id(blocking_id) if blocking_id else None
    if blocking is None:
        return ConflictError("Another unit in this department is being activated")
    return ConflictError(
        f"Unit {blocking.name!r} is already active in this department",
        activeUnit={"id": blocking.id, "name": blocking.name},
    )


async def _clear_duty(store: UnitStore, unit: Unit) -> Unit:
    """Take a unit off duty and release its department slot.

    The unit is off duty once saved. A slot left behind by a failed
    release is taken over as stale by the next activation.
    """
    unit.is_active = False
    unit.activated_at = None
    saved = await store.update(unit)
    try:
        await store.release_duty_slot(unit.department, unit.id)
    except Exception:
        logger.exception("Failed to release duty slot of unit %s", unit.id)
    return saved


async def activate(unit_id: str, *, now: datetime | None = None) -> dict:
    """Put a unit on duty.

    Args:
        unit_id: Unit to activate
        now: Activation time (defaults to the current org-local time)

    Returns:
        The updated unit

    Raises:
        NotFoundError: If the unit does not exist
        InvalidStateError: If the unit is not in the operations department
        ConflictError: If another unit in the department is active
    """
    now = _aware(now) if now else local_now()
    operations = get_org_config().operations_department

    async with UnitStore() as units, DepartmentStore() as departments:
        unit = await units.get_by_id(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", unitId=unit_id)

        department = await departments.get_by_id(unit.department)
        if department is None or not department.is_named(operations):
            raise InvalidStateError(
                f"Only units in the {operations} department can be activated",
                unitId=unit.id,
                department=department.name if department else None,
            )

        other = await units.find_active_in_department(department.id, exclude_unit_id=unit.id)
        if other is not None:
            raise await _conflict(units, other.id)

        holder = await units.claim_duty_slot(department.id, unit.id)
        if holder != unit.id and await _is_stale_holder(units, department.id, holder, now):
            logger.warning(
                "Taking over stale duty slot for department %s from %s", department.id, holder
            )
            holder = await units.claim_duty_slot(department.id, unit.id, replace_holder=holder)
        if holder != unit.id:
            raise await _conflict(units, holder)

        unit.is_active = True
        unit.activated_at = now
        try:
            saved = await units.update(unit)
        except Exception:
            await units.release_duty_slot(department.id, unit.id)
            raise

    logger.info("Unit %s (%s) activated at %s", saved.id, saved.name, now.isoformat())
    return saved.to_api()


async def deactivate(unit_id: str, *, now: datetime | None = None) -> dict:
    """Take a unit off duty.

    Units that were never activated (``activated_at`` is null) can be
    deactivated at any time. Otherwise the current time must be at or
    after the release cutoff.

    Raises:
        NotFoundError: If the unit does not exist
        TooEarlyError: If called before the release cutoff
    """
    now = _aware(now) if now else local_now()

    async with UnitStore() as units:
        unit = await units.get_by_id(unit_id)
        if unit is None:
            raise NotFoundError("Unit not found", unitId=unit_id)

        if unit.activated_at is not None:
            cutoff = release_cutoff(unit.activated_at)
            if now < cutoff:
                raise TooEarlyError(
                    f"Unit cannot be deactivated before {cutoff:%Y-%m-%d %H:%M}",
                    cutoff=cutoff,
                    unitId=unit.id,
                )

        saved = await _clear_duty(units, unit)

    logger.info("Unit %s (%s) deactivated", saved.id, saved.name)
    return saved.to_api()


async def auto_deactivate_sweep(*, now: datetime | None = None) -> dict:
    """Force off duty every active unit past its force cutoff.

    Intended to run daily at ``duty_sweep_hour``. A failure on one unit
    is logged and reported in ``failedUnits``; the sweep never raises.

    Returns:
        Dict with ``deactivatedCount``, ``deactivatedUnits`` and ``failedUnits``
    """
    now = _aware(now) if now else local_now()
    result = SweepResult()

    try:
        async with UnitStore() as units:
            for unit in await units.list_units(active=True, max_items=None):
                if unit.activated_at is None or now < force_cutoff(unit.activated_at):
                    continue

                activated_at = unit.activated_at
                try:
                    await _clear_duty(units, unit)
                except Exception as e:
                    logger.exception("Sweep failed to deactivate unit %s", unit.id)
                    result.failed_units.append({"unitId": unit.id, "error": str(e)})
                    continue

                result.deactivated_units.append(
                    {
                        "unitId": unit.id,
                        "name": unit.name,
                        "department": unit.department,
                        "activatedAt": activated_at.isoformat(),
                    }
                )
    except Exception:
        logger.exception("Duty sweep could not list active units")

    logger.info(
        "Duty sweep at %s: %d deactivated, %d failed",
        now.isoformat(),
        result.deactivated_count,
        len(result.failed_units),
    )
    return result.to_api()
