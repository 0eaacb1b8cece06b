"""Pydantic model for department documents."""

from pydantic import Field

from fireops.core.models import Document


class Department(Document):
    """An organizational department that owns zero or more units."""

    name: str = Field(max_length=200)
    description: str = Field(default="", max_length=2000)

    def is_named(self, name: str) -> bool:
        """Case-insensitive name comparison (``"Operations" == "operations"``)."""
        return self.name.strip().lower() == name.strip().lower()

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}
