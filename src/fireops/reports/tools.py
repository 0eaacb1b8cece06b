"""Fire report operations: creation, lifecycle updates and statistics.

Creating a report resolves two ambiguous caller inputs once, at ingress:

- ``userId`` may belong to a general user or to fire personnel. It is
  probed against users first, then fire personnel, and carried from
  then on as an explicit :class:`Reporter`.
- ``station`` may be a station ID or an inline descriptor. Descriptors
  are matched against existing stations by place ID, then exact
  coordinates, then name; the first method that matches wins. A
  descriptor that matches nothing is an error. Stations are never
  created here.

After creation, the unit on duty acts on a report exactly once:
dispatch, decline, or refer to another station.
"""

import logging
import math
from datetime import datetime

import pydantic

from fireops.core.config import get_org_config, get_timezone, local_now
from fireops.core.errors import ConflictError, NotFoundError, ValidationError, from_pydantic
from fireops.core.models import is_valid_id
from fireops.departments.store import DepartmentStore
from fireops.people.store import PersonnelStore, UserStore
from fireops.reports.models import (
    FireReport,
    Reporter,
    ReportPatch,
    ReportStats,
    StationByDescriptor,
    StationById,
    StationDescriptor,
    StationRef,
)
from fireops.reports.store import FireReportStore
from fireops.stations.store import StationStore
from fireops.units.models import Unit
from fireops.units.store import UnitStore

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("incidentType", "incidentName", "location", "station", "userId")
_OPTIONAL_FIELDS = {
    "description": "description",
    "estimatedCasualties": "estimated_casualties",
    "estimatedDamage": "estimated_damage",
    "priority": "priority",
}
MAX_PAGE_SIZE = 100


def _is_missing(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool) and math.isfinite(value)


def _check_coordinates(location: object) -> None:
    """Validate ``location.coordinates`` presence and range."""
    coordinates = location.get("coordinates") if isinstance(location, dict) else None
    if not isinstance(coordinates, dict):
        raise ValidationError("Location coordinates (latitude, longitude) are required")

    latitude = coordinates.get("latitude")
    longitude = coordinates.get("longitude")
    if latitude is None or longitude is None:
        raise ValidationError("Location coordinates (latitude, longitude) are required")
    if not _is_number(latitude) or not _is_number(longitude):
        raise ValidationError("Latitude and longitude must be numbers")
    if not -90 <= latitude <= 90:
        raise ValidationError("Latitude must be between -90 and 90", latitude=latitude)
    if not -180 <= longitude <= 180:
        raise ValidationError("Longitude must be between -180 and 180", longitude=longitude)


def parse_station_ref(station: object) -> StationRef:
    """Classify a caller's ``station`` value as an ID or a descriptor.

    Raises:
        ValidationError: If it is an invalid ID or neither a string nor an object
    """
    if isinstance(station, str):
        if not is_valid_id(station):
            raise ValidationError("Invalid station ID format")
        return StationById(id=station)
    if isinstance(station, dict):
        try:
            return StationByDescriptor(descriptor=StationDescriptor.model_validate(station))
        except pydantic.ValidationError as e:
            raise from_pydantic(e) from e
    raise ValidationError(
        "Station must be either a valid station ID or a station object with details"
    )


async def resolve_reporter(user_id: str) -> Reporter:
    """Determine whether ``user_id`` is a user or fire personnel.

    Raises:
        NotFoundError: If the ID exists in neither collection
    """
    async with UserStore() as users:
        if await users.get_by_id(user_id) is not None:
            return Reporter(kind="User", id=user_id)

    async with PersonnelStore() as personnel:
        if await personnel.get_by_id(user_id) is not None:
            return Reporter(kind="FirePersonnel", id=user_id)

    raise NotFoundError(
        "User ID not found. The provided ID does not exist in Users or FirePersonnel",
        userId=user_id,
    )


async def resolve_station(ref: StationRef) -> str:
    """Resolve a station reference to an existing station ID.

    IDs are passed through; their existence is checked when the report
    is stored.

    Raises:
        NotFoundError: If a descriptor matches no existing station
    """
    if isinstance(ref, StationById):
        return ref.id

    descriptor = ref.descriptor
    async with StationStore() as stations:
        found = None
        if descriptor.place_id:
            found = await stations.find_by_place_id(descriptor.place_id)
            method = "placeId"
        if found is None and descriptor.has_coordinates:
            found = await stations.find_by_coordinates(descriptor.latitude, descriptor.longitude)
            method = "coordinates"
        if found is None and descriptor.name:
            found = await stations.find_by_name(descriptor.name)
            method = "name"

    if found is None:
        raise NotFoundError(
            "Station not found. Please ensure the station exists in the system.",
            providedStation=descriptor.model_dump(by_alias=True, exclude_none=True),
        )

    logger.info("Resolved station descriptor to %s by %s", found.id, method)
    return found.id


async def _find_duty_assignment(station_id: str) -> tuple[str | None, str | None]:
    """Find the operations department and its active unit for a new report.

    Prefers an active unit with personnel stationed at ``station_id``,
    falling back to any active unit in the department.

    Returns:
        Tuple of (department ID, unit ID); either may be None
    """
    async with DepartmentStore() as departments:
        operations = await departments.find_by_name(get_org_config().operations_department)
    if operations is None:
        logger.warning("Operations department not found; report will have no duty unit")
        return None, None

    async with PersonnelStore() as personnel:
        station_units = await personnel.unit_ids_at_station(station_id)

    async with UnitStore() as units:
        active = await units.list_units(department_id=operations.id, active=True)

    unit: Unit | None = next((u for u in active if u.id in station_units), None)
    if unit is None and active:
        unit = active[0]
    if unit is None:
        logger.warning("No active unit in %s department", operations.name)
    return operations.id, unit.id if unit else None


async def _expand(report: FireReport) -> dict:
    """Serialize a report with its references expanded for display."""
    data = report.to_api()

    async with StationStore() as stations:
        station = await stations.get_by_id(report.station)
        data["station"] = station.summary() if station else {"id": report.station}
        if report.referred_to_station:
            referred = await stations.get_by_id(report.referred_to_station)
            data["referredStationDetails"] = referred.summary() if referred else None

    if report.reporter_type == "User":
        async with UserStore() as users:
            reporter = await users.get_by_id(report.reporter_id)
    else:
        async with PersonnelStore() as personnel:
            reporter = await personnel.get_by_id(report.reporter_id)
    data["reporterDetails"] = reporter.summary() if reporter else None

    async with PersonnelStore() as personnel:
        assigned = await personnel.get_many(report.assigned_personnel)
    data["assignedPersonnel"] = [p.summary() for p in assigned]

    if report.department:
        async with DepartmentStore() as departments:
            department = await departments.get_by_id(report.department)
        data["department"] = department.summary() if department else {"id": report.department}
    if report.unit:
        async with UnitStore() as units:
            unit = await units.get_by_id(report.unit)
        data["unit"] = unit.summary() if unit else {"id": report.unit}

    return data


async def create_report(payload: dict, *, now: datetime | None = None) -> dict:
    """Create a fire report in "pending" status.

    Args:
        payload: Request body with ``incidentType``, ``incidentName``,
            ``location`` (with ``coordinates``), ``station`` (ID or
            descriptor) and ``userId``; optionally ``description``,
            ``estimatedCasualties``, ``estimatedDamage``, ``priority``
        now: Report time (defaults to the current time)

    Returns:
        The created report with station, reporter and assignments expanded

    Raises:
        ValidationError: Missing or malformed fields (first violation wins)
        NotFoundError: Unknown reporter, or a station that cannot be resolved
    """
    missing = [f for f in _REQUIRED_FIELDS if _is_missing(payload.get(f))]
    if missing:
        raise ValidationError(
            "Missing required fields: " + ", ".join(_REQUIRED_FIELDS), missing=missing
        )

    _check_coordinates(payload["location"])

    user_id = payload["userId"]
    if not is_valid_id(user_id):
        raise ValidationError("Invalid user ID format")

    reporter = await resolve_reporter(user_id)
    station_id = await resolve_station(parse_station_ref(payload["station"]))

    try:
        department_id, unit_id = await _find_duty_assignment(station_id)
    except Exception:
        logger.warning("Failed to find duty unit for station %s", station_id, exc_info=True)
        department_id, unit_id = None, None

    optional = {
        attr: payload[key] for key, attr in _OPTIONAL_FIELDS.items() if payload.get(key) is not None
    }
    try:
        doc = FireReport(
            incident_type=payload["incidentType"],
            incident_name=payload["incidentName"],
            location=payload["location"],
            station=station_id,
            department=department_id,
            unit=unit_id,
            reporter_id=reporter.id,
            reporter_type=reporter.kind,
            reported_at=now or local_now(),
            status="pending",
            **optional,
        )
    except pydantic.ValidationError as e:
        raise from_pydantic(e) from e

    async with FireReportStore() as store:
        created = await store.create(doc)

    logger.info(
        "%s %s created fire report %s (%s) at station %s",
        reporter.kind,
        reporter.id,
        created.id,
        created.incident_type,
        created.station,
    )
    return await _expand(created)


async def _require_report(store: FireReportStore, report_id: str) -> FireReport:
    if not is_valid_id(report_id):
        raise ValidationError("Invalid fire report ID format")
    report = await store.get_by_id(report_id)
    if report is None:
        raise NotFoundError("Fire report not found", reportId=report_id)
    return report


async def get_report(report_id: str) -> dict:
    """Get a single report with references expanded."""
    async with FireReportStore() as store:
        report = await _require_report(store, report_id)
    return await _expand(report)


async def update_report(report_id: str, patch: dict, *, now: datetime | None = None) -> dict:
    """Apply a partial update to a report.

    Setting ``status`` to "resolved" without a ``resolvedAt`` stamps
    ``resolvedAt`` with the update time. An explicit ``resolvedAt`` is
    kept as given.

    Raises:
        ValidationError: Unknown fields, or values outside their allowed sets
        NotFoundError: If the report does not exist
    """
    try:
        changes = ReportPatch.model_validate(patch)
    except pydantic.ValidationError as e:
        raise from_pydantic(e) from e

    updates = changes.model_dump(exclude_unset=True)
    if any(not is_valid_id(p) for p in updates.get("assigned_personnel") or []):
        raise ValidationError("Invalid personnel ID format in assignedPersonnel")
    if updates.get("status") == "resolved" and updates.get("resolved_at") is None:
        updates["resolved_at"] = now or local_now()

    async with FireReportStore() as store:
        report = await _require_report(store, report_id)
        try:
            updated = FireReport.model_validate({**report.model_dump(), **updates})
        except pydantic.ValidationError as e:
            raise from_pydantic(e) from e
        saved = await store.update(updated)

    logger.info("Updated fire report %s (%s)", saved.id, ", ".join(sorted(updates)))
    return await _expand(saved)


async def delete_report(report_id: str) -> None:
    """Delete a report.

    Raises:
        NotFoundError: If the report does not exist
    """
    async with FireReportStore() as store:
        report = await _require_report(store, report_id)
        await store.delete(report.id)


async def list_reports(
    *,
    station_id: str | None = None,
    reporter_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """List reports newest first, one page at a time.

    Returns:
        Dict with ``data`` (expanded reports) and ``pagination``
        (``current``, ``pages``, ``total``)
    """
    for label, value in (("station", station_id), ("reporter", reporter_id)):
        if value is not None and not is_valid_id(value):
            raise ValidationError(f"Invalid {label} ID format")
    if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

    async with FireReportStore() as store:
        reports, total = await store.list_reports(
            station_id=station_id,
            reporter_id=reporter_id,
            status=status,
            priority=priority,
            offset=(page - 1) * limit,
            limit=limit,
        )

    return {
        "data": [await _expand(r) for r in reports],
        "pagination": {"current": page, "pages": math.ceil(total / limit), "total": total},
    }


async def compute_stats(
    *,
    station_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Count reports by status, priority and incident type.

    Every bucket is present in the result, zero when nothing matches.
    ``start``/``end`` bound ``reportedAt`` inclusively. Naive bounds are taken as
    organization-local time.
    """
    if station_id is not None and not is_valid_id(station_id):
        raise ValidationError("Invalid station ID format")
    tz = get_timezone()
    start, end = (d.replace(tzinfo=tz) if d and d.tzinfo is None else d for d in (start, end))
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate")

    async with FireReportStore() as store:
        counts = await store.count_by_buckets(station_id=station_id, start=start, end=end)

    stats = ReportStats.from_counts(counts, get_org_config().incident_types)
    return stats.model_dump(by_alias=True)


async def _require_actionable(store: FireReportStore, report_id: str, action: str) -> FireReport:
    """Load a report the duty unit may still act on.

    Raises:
        ConflictError: If no active unit holds the report, or the unit
            already dispatched, declined or referred it
    """
    report = await _require_report(store, report_id)

    unit = None
    if report.unit:
        async with UnitStore() as units:
            unit = await units.get_by_id(report.unit)
    if unit is None or not unit.is_active:
        raise ConflictError(f"Fire report must be assigned to an active unit before {action}")

    if report.has_unit_action:
        if report.dispatched:
            label = "dispatched"
        elif report.declined:
            label = "declined"
        else:
            label = "referred to another station"
        raise ConflictError(f"Fire report has already been {label}", reportId=report.id)
    return report


async def dispatch_report(report_id: str, *, now: datetime | None = None) -> dict:
    """Record that the unit on duty dispatched to this report."""
    async with FireReportStore() as store:
        report = await _require_actionable(store, report_id, "dispatch")
        report.dispatched = True
        report.dispatched_at = now or local_now()
        report.status = "responding"
        saved = await store.update(FireReport.model_validate(report.model_dump()))

    logger.info("Fire report %s dispatched by unit %s", saved.id, saved.unit)
    return await _expand(saved)


async def decline_report(report_id: str, reason: str, *, now: datetime | None = None) -> dict:
    """Record that the unit on duty declined this report."""
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Decline reason is required")

    async with FireReportStore() as store:
        report = await _require_actionable(store, report_id, "declining")
        report.declined = True
        report.declined_at = now or local_now()
        report.decline_reason = reason.strip()
        saved = await store.update(FireReport.model_validate(report.model_dump()))

    logger.info("Fire report %s declined by unit %s", saved.id, saved.unit)
    return await _expand(saved)


async def refer_report(
    report_id: str, station_id: str, reason: str, *, now: datetime | None = None
) -> dict:
    """Refer a report to another station.

    The report moves to the new station and loses its unit and
    department assignment, to be picked up there.
    """
    if _is_missing(station_id):
        raise ValidationError("Station ID is required")
    if not is_valid_id(station_id):
        raise ValidationError("Invalid station ID format")
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Refer reason is required")

    async with StationStore() as stations:
        if await stations.get_by_id(station_id) is None:
            raise NotFoundError("Referred station not found", stationId=station_id)

    async with FireReportStore() as store:
        report = await _require_actionable(store, report_id, "referring")
        if report.station == station_id:
            raise ConflictError("Cannot refer fire report to the same station")

        report.referred = True
        report.referred_at = now or local_now()
        report.referred_to_station = station_id
        report.refer_reason = reason.strip()
        report.station = station_id
        report.unit = None
        report.department = None
        saved = await store.update(FireReport.model_validate(report.model_dump()))

    logger.info("Fire report %s referred to station %s", saved.id, station_id)
    return await _expand(saved)
