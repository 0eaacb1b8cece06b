"""Shared pydantic base for documents stored in Cosmos DB.

Documents are exchanged with Cosmos and HTTP clients in camelCase
(``isActive``, ``reporterType``) while Python code uses snake_case.
"""

import uuid
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def new_id() -> str:
    """Generate a new document identifier."""
    return str(uuid.uuid4())


def is_valid_id(value: object) -> bool:
    """Check whether ``value`` is a syntactically valid document identifier."""
    if not isinstance(value, str) or not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_utc(value: datetime | None) -> datetime | None:
    """Convert to UTC, treating naive datetimes as already UTC."""
    if value is None:
        return None
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def iso_utc(value: datetime) -> str:
    """Fixed-width UTC ISO string (always microseconds) that sorts chronologically."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CamelModel(BaseModel):
    """Base model with camelCase aliases; accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Document(CamelModel):
    """A top-level Cosmos DB document with an ``id`` and audit timestamps."""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    def to_cosmos(self) -> dict:
        """Serialize for Cosmos DB storage."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_cosmos(cls, data: dict) -> Self:
        """Deserialize from Cosmos DB document, ignoring system fields."""
        return cls.model_validate({k: v for k, v in data.items() if not k.startswith("_")})

    def to_api(self) -> dict:
        """Serialize for HTTP responses."""
        return self.model_dump(mode="json", by_alias=True)
