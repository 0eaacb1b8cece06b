"""Pydantic models for user and fire personnel documents."""

from pydantic import Field

from fireops.core.models import Document


class User(Document):
    """A member of the public who can file incident reports."""

    name: str = Field(default="", max_length=200)
    phone: str = Field(default="", max_length=40)
    email: str | None = Field(default=None, max_length=254)

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "phone": self.phone, "email": self.email}


class FirePersonnel(Document):
    """A member of the fire service.

    ``unit`` and ``station_id`` are used to find which units have
    personnel stationed at a given station.
    """

    name: str = Field(max_length=200)
    rank: str = Field(default="", max_length=100)
    role: str = Field(default="", max_length=100)
    department: str | None = None
    unit: str | None = None
    station_id: str | None = None

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rank": self.rank,
            "role": self.role,
            "department": self.department,
            "unit": self.unit,
            "stationId": self.station_id,
        }
