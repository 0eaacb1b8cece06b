"""Pydantic models for station documents."""

from pydantic import Field

from fireops.core.models import CamelModel, Document


class StationCoordinates(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Station(Document):
    """A fire station. Every field except ``id`` is optional.

    ``call_sign`` and ``place_id`` (an external maps place identifier)
    are unique when present.
    """

    name: str | None = Field(default=None, max_length=200)
    call_sign: str | None = Field(default=None, max_length=40)
    place_id: str | None = Field(default=None, max_length=300)
    location: str | None = Field(default=None, max_length=500)
    region: str | None = Field(default=None, max_length=200)
    coordinates: StationCoordinates | None = None
    phone_number: str | None = Field(default=None, max_length=40)

    def summary(self) -> dict:
        """Fields included when a report expands its station reference."""
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "coordinates": self.coordinates.model_dump() if self.coordinates else None,
            "phoneNumber": self.phone_number,
            "placeId": self.place_id,
        }
