"""Shared pytest fixtures."""

import pytest

from fireops.departments.models import Department
from fireops.departments.store import DepartmentStore
from fireops.people.models import FirePersonnel, User
from fireops.people.store import PersonnelStore, UserStore
from fireops.reports.store import FireReportStore
from fireops.stations.models import Station, StationCoordinates
from fireops.stations.store import StationStore
from fireops.units.models import Unit
from fireops.units.store import UnitStore

_STORES = (
    DepartmentStore,
    UnitStore,
    StationStore,
    UserStore,
    PersonnelStore,
    FireReportStore,
)


def _clear_stores() -> None:
    for store_cls in _STORES:
        store_cls._memory.clear()
    UnitStore._slot_memory.clear()


@pytest.fixture(autouse=True)
def _clear_memory_and_env(monkeypatch):
    """Reset in-memory stores and ensure Cosmos env vars are unset."""
    _clear_stores()
    monkeypatch.delenv("COSMOS_ENDPOINT", raising=False)
    monkeypatch.delenv("COSMOS_KEY", raising=False)
    monkeypatch.delenv("COSMOS_DATABASE", raising=False)
    monkeypatch.setattr("fireops.core.cosmos.load_dotenv", lambda: None)
    monkeypatch.setattr("fireops.core.config.load_dotenv", lambda: None)
    yield
    _clear_stores()


@pytest.fixture
async def operations():
    """The operations department."""
    async with DepartmentStore() as store:
        return await store.create(Department(name="Operations", description="Fire response"))


@pytest.fixture
async def admin():
    """A non-operations department."""
    async with DepartmentStore() as store:
        return await store.create(Department(name="Administration"))


async def _make_unit(department: Department, name: str = "Alpha", **overrides) -> Unit:
    fields = {"name": name, "department": department.id, "shift": "day"}
    fields.update(overrides)
    async with UnitStore() as store:
        return await store.create(Unit(**fields))


@pytest.fixture
def make_unit():
    """Factory creating units directly in the store (shift "day" by default)."""
    return _make_unit


@pytest.fixture
async def station():
    """Accra Central fire station with place ID and coordinates."""
    async with StationStore() as store:
        return await store.create(
            Station(
                name="Accra Central Fire Station",
                call_sign="ACC-1",
                place_id="ChIJ-accra-central",
                location="Barnes Road, Accra",
                region="Greater Accra",
                coordinates=StationCoordinates(lat=5.5502, lng=-0.2174),
                phone_number="+233302000001",
            )
        )


@pytest.fixture
async def other_station():
    async with StationStore() as store:
        return await store.create(
            Station(
                name="Tema Fire Station",
                call_sign="TEM-1",
                place_id="ChIJ-tema",
                coordinates=StationCoordinates(lat=5.6698, lng=-0.0166),
            )
        )


@pytest.fixture
async def user():
    async with UserStore() as store:
        return await store.create(User(name="Ama Mensah", phone="+233201234567"))


@pytest.fixture
async def firefighter(station):
    """Fire personnel stationed at ``station``."""
    async with PersonnelStore() as store:
        return await store.create(
            FirePersonnel(name="Kofi Boateng", rank="Sergeant", station_id=station.id)
        )
