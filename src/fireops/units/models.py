"""Pydantic models for unit documents and duty slots."""

from datetime import datetime

from pydantic import Field, field_validator

from fireops.core.models import CamelModel, Document, utcnow


class Unit(Document):
    """An organizational sub-group of a department that goes on and off duty.

    ``is_active`` and ``activated_at`` are owned by the duty roster;
    administrative edits never touch them.
    """

    name: str = Field(min_length=1, max_length=100)
    color: str = Field(default="#000000", max_length=20)
    department: str  # Department ID
    group_names: list[str] = Field(default_factory=list)
    shift: str | None = Field(default=None, max_length=50)
    is_active: bool = False
    activated_at: datetime | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Unit name must not be blank")
        return v

    def summary(self) -> dict:
        """Fields included when a report expands its unit reference."""
        return {
            "id": self.id,
            "name": self.name,
            "shift": self.shift,
            "isActive": self.is_active,
        }


class DutySlot(CamelModel):
    """Per-department claim on the single active-unit slot.

    The document ID is the department ID, so creating a second slot for
    the same department fails atomically in the store.
    """

    id: str  # Department ID
    unit_id: str
    claimed_at: datetime = Field(default_factory=utcnow)

    def to_cosmos(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SweepResult(CamelModel):
    """Outcome of one auto-deactivation sweep."""

    deactivated_units: list[dict] = Field(default_factory=list)
    failed_units: list[dict] = Field(default_factory=list)

    @property
    def deactivated_count(self) -> int:
        return len(self.deactivated_units)

    def to_api(self) -> dict:
        return {
            "deactivatedCount": self.deactivated_count,
            "deactivatedUnits": self.deactivated_units,
            "failedUnits": self.failed_units,
        }
