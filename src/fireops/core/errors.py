"""Error taxonomy shared by the roster and report services.

Every error carries a stable ``kind`` and an HTTP status so route
handlers can translate it without inspecting messages. Structured
details (blocking unit, cutoff time, ...) travel in ``details`` and are
merged into the serialized body.
"""

from datetime import datetime
from typing import Any, ClassVar

import pydantic


class OpsError(Exception):
    """Base class for errors surfaced to callers.

    Raised directly only for unexpected infrastructure failures.
    """

    kind: ClassVar[str] = "unexpected"
    status_code: ClassVar[int] = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Serialize as an error body: ``{"error", "kind", **details}``."""
        return {"error": self.message, "kind": self.kind, **self.details}


class ValidationError(OpsError):
    """Malformed, missing or out-of-range input. Always caller-fixable."""

    kind = "validation"
    status_code = 400


class NotFoundError(OpsError):
    """A referenced entity does not exist."""

    kind = "not_found"
    status_code = 404


class InvalidStateError(OpsError):
    """The entity can never take this transition (e.g. wrong department)."""

    kind = "invalid_state"
    status_code = 400


class ConflictError(OpsError):
    """The operation would violate a state invariant."""

    kind = "conflict"
    status_code = 409


class TooEarlyError(ConflictError):
    """Deactivation attempted before the unit's release cutoff."""

    kind = "too_early"

    def __init__(self, message: str, *, cutoff: datetime, **details: Any) -> None:
        super().__init__(message, cutoff=cutoff.isoformat(), **details)
        self.cutoff = cutoff


def from_pydantic(exc: pydantic.ValidationError) -> ValidationError:
    """Convert a pydantic validation failure into a ``ValidationError``."""
    errors = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
    return ValidationError("Validation error", errors=errors)
