"""Pydantic models for fire incident reports.

A report stores only a station ID and a reporter ID + type. Inline
station descriptors and bare reporter IDs from callers are resolved to
those values before a :class:`FireReport` is built (see ``tools``).
"""

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field, field_serializer, field_validator

from fireops.core.models import CamelModel, Document, iso_utc, to_utc, utcnow

ReportStatus = Literal["pending", "responding", "resolved", "closed"]
ReportPriority = Literal["low", "medium", "high"]
DamageEstimate = Literal["minimal", "moderate", "severe", "extensive"]
ReporterKind = Literal["User", "FirePersonnel"]

STATUSES: tuple[str, ...] = ("pending", "responding", "resolved", "closed")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high")

MAX_TEXT_LENGTH = 5_000
MAX_ASSIGNED_PERSONNEL = 100


class Coordinates(CamelModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Location(CamelModel):
    """Where the incident is, with optional map link and display name."""

    coordinates: Coordinates
    location_url: str | None = Field(default=None, max_length=2000)
    location_name: str | None = Field(default=None, max_length=500)


class Reporter(CamelModel):
    """Who filed the report, resolved once at ingress."""

    kind: ReporterKind
    id: str


class StationDescriptor(CamelModel):
    """Inline station attributes submitted in place of a station ID.

    Resolved against existing stations by place ID, then exact
    coordinates, then name. Never used to create a station.
    """

    name: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    place_id: str | None = None
    phone: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class StationById(CamelModel):
    id: str


class StationByDescriptor(CamelModel):
    descriptor: StationDescriptor


StationRef = StationById | StationByDescriptor


class FireReport(Document):
    """A fire incident report stored in Cosmos DB."""

    incident_type: str = Field(min_length=1, max_length=100)
    incident_name: str = Field(min_length=1, max_length=300)
    location: Location
    station: str  # Station ID
    department: str | None = None  # Operations department ID
    unit: str | None = None  # Active unit at creation time
    reporter_id: str
    reporter_type: ReporterKind
    reported_at: datetime = Field(default_factory=utcnow)
    status: ReportStatus = "pending"
    priority: ReportPriority = "high"
    description: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)
    estimated_casualties: int = Field(default=0, ge=0)
    estimated_damage: DamageEstimate = "minimal"
    assigned_personnel: list[str] = Field(default_factory=list, max_length=MAX_ASSIGNED_PERSONNEL)
    response_time: float | None = Field(default=None, ge=0)  # Minutes
    resolved_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)

    # Set by the unit on duty once it receives the alert
    dispatched: bool = False
    dispatched_at: datetime | None = None
    declined: bool = False
    declined_at: datetime | None = None
    decline_reason: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)
    referred: bool = False
    referred_at: datetime | None = None
    referred_to_station: str | None = None
    refer_reason: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)

    @field_validator("incident_type", "incident_name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("priority", "estimated_damage", mode="before")
    @classmethod
    def _blank_to_default(cls, v: object, info) -> object:
        """Blank enum values fall back to the field default."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("reported_at", "resolved_at", "dispatched_at", "declined_at", "referred_at")
    @classmethod
    def _to_utc(cls, v: datetime | None) -> datetime | None:
        """Store times in UTC so range queries compare consistently."""
        return to_utc(v)

    @field_serializer(
        "reported_at",
        "resolved_at",
        "dispatched_at",
        "declined_at",
        "referred_at",
        when_used="json-unless-none",
    )
    def _serialize_utc(self, v: datetime) -> str:
        """Stored as fixed-width strings so Cosmos range queries compare correctly."""
        return iso_utc(v)

    @field_validator("assigned_personnel")
    @classmethod
    def _dedupe_personnel(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @property
    def reporter(self) -> Reporter:
        return Reporter(kind=self.reporter_type, id=self.reporter_id)

    @property
    def response_time_minutes(self) -> int | None:
        """Whole minutes from report to resolution, or None if unresolved."""
        if self.resolved_at is None:
            return None
        return round((self.resolved_at - self.reported_at).total_seconds() / 60)

    @property
    def has_unit_action(self) -> bool:
        """Whether the duty unit already dispatched, declined or referred."""
        return self.dispatched or self.declined or self.referred

    def to_api(self) -> dict:
        data = super().to_api()
        data["responseTimeMinutes"] = self.response_time_minutes
        return data


class ReportPatch(CamelModel):
    """Fields a caller may change on an existing report."""

    model_config = ConfigDict(extra="forbid")

    status: ReportStatus | None = None
    priority: ReportPriority | None = None
    description: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)
    estimated_casualties: int | None = Field(default=None, ge=0)
    estimated_damage: DamageEstimate | None = None
    assigned_personnel: list[str] | None = Field(default=None, max_length=MAX_ASSIGNED_PERSONNEL)
    notes: str | None = Field(default=None, max_length=MAX_TEXT_LENGTH)
    response_time: float | None = Field(default=None, ge=0)
    resolved_at: datetime | None = None


class ReportStats(CamelModel):
    """Report counts broken down by status, priority and incident type.

    Every bucket is always present; missing counts are zero.
    """

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(STATUSES, 0))
    by_priority: dict[str, int] = Field(default_factory=lambda: dict.fromkeys(PRIORITIES, 0))
    by_incident_type: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_counts(cls, counts: dict, incident_types: tuple[str, ...]) -> "ReportStats":
        """Build stats from raw store counts, filling missing buckets with zero.

        Args:
            counts: ``{"total": n, "status": {...}, "priority": {...}, "incidentType": {...}}``
            incident_types: Incident type buckets to report
        """
        status = counts.get("status", {})
        priority = counts.get("priority", {})
        incident_type = counts.get("incidentType", {})
        return cls(
            total=counts.get("total", 0),
            by_status={s: status.get(s, 0) for s in STATUSES},
            by_priority={p: priority.get(p, 0) for p in PRIORITIES},
            by_incident_type={t: incident_type.get(t, 0) for t in incident_types},
        )
