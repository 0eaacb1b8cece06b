"""Tests for fire report intake, lifecycle and statistics."""

from datetime import datetime
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import pytest

from fireops.core.errors import ConflictError, NotFoundError, ValidationError
from fireops.core.models import new_id
from fireops.people.models import FirePersonnel
from fireops.people.store import PersonnelStore
from fireops.reports import tools
from fireops.reports.store import FireReportStore
from fireops.stations.store import StationStore
from fireops.units import roster

ACCRA = ZoneInfo("Africa/Accra")
REPORTED = datetime(2024, 3, 1, 12, 0, tzinfo=ACCRA)


def _payload(station, user_id: str, **overrides) -> dict:
    """Helper to build a create_report body with sensible defaults."""
    payload = {
        "incidentType": "fire",
        "incidentName": "Makola market fire",
        "location": {
            "coordinates": {"latitude": 5.5466, "longitude": -0.2074},
            "locationName": "Makola Market",
        },
        "station": station,
        "userId": user_id,
    }
    payload.update(overrides)
    return payload


def _at(latitude, longitude) -> dict:
    return {"coordinates": {"latitude": latitude, "longitude": longitude}}


@pytest.fixture
async def on_duty(operations, make_unit, station):
    """An active operations unit with a firefighter at ``station``."""
    unit = await make_unit(operations, "Alpha")
    async with PersonnelStore() as store:
        await store.create(FirePersonnel(name="Yaw Asante", unit=unit.id, station_id=station.id))
    await roster.activate(unit.id)
    return unit


class TestCreateReport:
    async def test_creates_pending_report(self, station, user):
        result = await tools.create_report(_payload(station.id, user.id), now=REPORTED)

        assert result["status"] == "pending"
        assert result["priority"] == "high"
        assert result["estimatedDamage"] == "minimal"
        assert result["estimatedCasualties"] == 0
        assert result["reporterType"] == "User"
        assert result["reporterId"] == user.id
        assert result["reporterDetails"]["name"] == "Ama Mensah"
        assert result["station"]["id"] == station.id
        assert result["station"]["name"] == "Accra Central Fire Station"
        assert result["location"]["locationName"] == "Makola Market"
        assert result["reportedAt"].startswith("2024-03-01T12:00:00")
        assert len(FireReportStore._memory) == 1

    async def test_fire_personnel_reporter(self, station, firefighter):
        result = await tools.create_report(_payload(station.id, firefighter.id))
        assert result["reporterType"] == "FirePersonnel"
        assert result["reporterDetails"]["rank"] == "Sergeant"

    async def test_optional_fields(self, station, user):
        result = await tools.create_report(
            _payload(
                station.id,
                user.id,
                description="Two stalls burning",
                estimatedCasualties=2,
                estimatedDamage="severe",
                priority="medium",
            )
        )
        assert result["description"] == "Two stalls burning"
        assert result["estimatedCasualties"] == 2
        assert result["estimatedDamage"] == "severe"
        assert result["priority"] == "medium"

    async def test_blank_enums_fall_back_to_defaults(self, station, user):
        result = await tools.create_report(
            _payload(station.id, user.id, priority="", estimatedDamage="  ")
        )
        assert result["priority"] == "high"
        assert result["estimatedDamage"] == "minimal"

    async def test_unknown_priority_rejected(self, station, user):
        with pytest.raises(ValidationError):
            await tools.create_report(_payload(station.id, user.id, priority="urgent"))
        assert FireReportStore._memory == {}


class TestCreateValidation:
    async def test_missing_required_fields(self, station, user):
        payload = _payload(station.id, user.id)
        del payload["incidentName"]
        payload["station"] = ""

        with pytest.raises(ValidationError, match="Missing required fields") as exc_info:
            await tools.create_report(payload)
        assert exc_info.value.details["missing"] == ["incidentName", "station"]

    async def test_missing_coordinates(self, station, user):
        with pytest.raises(ValidationError, match="coordinates"):
            await tools.create_report(
                _payload(station.id, user.id, location={"locationName": "Somewhere"})
            )

    @pytest.mark.parametrize(
        "location",
        [_at(91, 0), _at(-90.0001, 0), _at(0, 180.5), _at(0, -181)],
    )
    async def test_out_of_range_coordinates(self, station, user, location):
        with pytest.raises(ValidationError, match="must be between"):
            await tools.create_report(_payload(station.id, user.id, location=location))
        assert FireReportStore._memory == {}

    @pytest.mark.parametrize("location", [_at(90, 180), _at(-90, -180), _at(0, 0)])
    async def test_boundary_coordinates_accepted(self, station, user, location):
        result = await tools.create_report(_payload(station.id, user.id, location=location))
        assert result["location"]["coordinates"] == location["coordinates"]

    async def test_non_numeric_coordinates(self, station, user):
        with pytest.raises(ValidationError, match="numbers"):
            await tools.create_report(_payload(station.id, user.id, location=_at("5.5", 0)))

    async def test_invalid_user_id(self, station):
        with pytest.raises(ValidationError, match="user ID"):
            await tools.create_report(_payload(station.id, "user-123"))

    async def test_unknown_user(self, station):
        with pytest.raises(NotFoundError, match="Users or FirePersonnel"):
            await tools.create_report(_payload(station.id, new_id()))
        assert FireReportStore._memory == {}

    async def test_invalid_station_id(self, user):
        with pytest.raises(ValidationError, match="station ID"):
            await tools.create_report(_payload("station-1", user.id))

    async def test_unknown_station_id(self, user):
        with pytest.raises(NotFoundError):
            await tools.create_report(_payload(new_id(), user.id))
        assert FireReportStore._memory == {}

    async def test_station_of_wrong_shape(self, user):
        with pytest.raises(ValidationError, match="station object"):
            await tools.create_report(_payload(42, user.id))


class TestStationResolution:
    async def test_by_place_id_only(self, station, user):
        result = await tools.create_report(_payload({"placeId": "ChIJ-accra-central"}, user.id))
        assert result["station"]["id"] == station.id

    async def test_by_coordinates(self, station, user):
        result = await tools.create_report(
            _payload({"latitude": 5.5502, "longitude": -0.2174}, user.id)
        )
        assert result["station"]["id"] == station.id

    async def test_by_name_substring(self, station, other_station, user):
        result = await tools.create_report(_payload({"name": "tema"}, user.id))
        assert result["station"]["id"] == other_station.id

    async def test_falls_through_to_next_method(self, station, other_station, user):
        descriptor = {"placeId": "ChIJ-unknown", "latitude": 5.6698, "longitude": -0.0166}
        result = await tools.create_report(_payload(descriptor, user.id))
        assert result["station"]["id"] == other_station.id

    async def test_place_id_wins_over_name(self, station, other_station, user):
        descriptor = {"placeId": "ChIJ-accra-central", "name": "Tema"}
        result = await tools.create_report(_payload(descriptor, user.id))
        assert result["station"]["id"] == station.id

    async def test_unmatched_descriptor_creates_nothing(self, station, user):
        descriptor = {"name": "Kumasi Fire Station", "placeId": "ChIJ-kumasi"}

        with pytest.raises(NotFoundError, match="Station not found") as exc_info:
            await tools.create_report(_payload(descriptor, user.id))

        assert exc_info.value.details["providedStation"] == descriptor
        assert FireReportStore._memory == {}
        async with StationStore() as store:
            assert len(await store.list_all()) == 1


class TestDutyAssignment:
    async def test_assigns_operations_and_active_unit(self, station, user, operations, on_duty):
        result = await tools.create_report(_payload(station.id, user.id))
        assert result["department"]["id"] == operations.id
        assert result["unit"]["id"] == on_duty.id
        assert result["unit"]["isActive"] is True

    async def test_no_active_unit(self, station, user, operations):
        result = await tools.create_report(_payload(station.id, user.id))
        assert result["department"]["id"] == operations.id
        assert result["unit"] is None

    async def test_no_operations_department(self, station, user):
        result = await tools.create_report(_payload(station.id, user.id))
        assert result["department"] is None
        assert result["unit"] is None

    async def test_assignment_failure_is_not_fatal(self, station, user):
        with patch(
            "fireops.reports.tools._find_duty_assignment",
            AsyncMock(side_effect=RuntimeError("lookup failed")),
        ):
            result = await tools.create_report(_payload(station.id, user.id))
        assert result["status"] == "pending"
        assert result["unit"] is None


class TestUpdateReport:
    async def _create(self, station, user) -> dict:
        return await tools.create_report(_payload(station.id, user.id), now=REPORTED)

    async def test_resolving_stamps_resolved_at(self, station, user):
        report = await self._create(station, user)
        resolved = datetime(2024, 3, 1, 13, 0, tzinfo=ACCRA)

        result = await tools.update_report(report["id"], {"status": "resolved"}, now=resolved)

        assert result["status"] == "resolved"
        assert result["resolvedAt"].startswith("2024-03-01T13:00:00")
        assert result["responseTimeMinutes"] == 60

    async def test_explicit_resolved_at_preserved(self, station, user):
        report = await self._create(station, user)
        result = await tools.update_report(
            report["id"],
            {"status": "resolved", "resolvedAt": "2024-03-01T12:30:00+00:00"},
            now=datetime(2024, 3, 2, 9, 0, tzinfo=ACCRA),
        )
        assert result["resolvedAt"].startswith("2024-03-01T12:30:00")
        assert result["responseTimeMinutes"] == 30

    async def test_null_resolved_at_is_stamped(self, station, user):
        report = await self._create(station, user)
        resolved = datetime(2024, 3, 1, 13, 0, tzinfo=ACCRA)

        result = await tools.update_report(
            report["id"], {"status": "resolved", "resolvedAt": None}, now=resolved
        )

        assert result["resolvedAt"].startswith("2024-03-01T13:00:00")
        assert result["responseTimeMinutes"] == 60

    async def test_other_status_leaves_resolved_at(self, station, user):
        report = await self._create(station, user)
        result = await tools.update_report(report["id"], {"status": "responding"})
        assert result["resolvedAt"] is None

    async def test_assigned_personnel_expanded(self, station, user, firefighter):
        report = await self._create(station, user)
        result = await tools.update_report(
            report["id"], {"assignedPersonnel": [firefighter.id, firefighter.id]}
        )
        assert [p["id"] for p in result["assignedPersonnel"]] == [firefighter.id]

    async def test_invalid_personnel_id(self, station, user):
        report = await self._create(station, user)
        with pytest.raises(ValidationError, match="personnel ID"):
            await tools.update_report(report["id"], {"assignedPersonnel": ["bob"]})

    @pytest.mark.parametrize(
        "patch_body",
        [{"status": "archived"}, {"priority": "urgent"}, {"estimatedDamage": "total"}],
    )
    async def test_values_outside_allowed_sets(self, station, user, patch_body):
        report = await self._create(station, user)
        with pytest.raises(ValidationError):
            await tools.update_report(report["id"], patch_body)

    @pytest.mark.parametrize("field", ["reporterType", "station", "incidentName", "bogus"])
    async def test_immutable_or_unknown_fields(self, station, user, field):
        report = await self._create(station, user)
        with pytest.raises(ValidationError):
            await tools.update_report(report["id"], {field: "x"})

    async def test_missing_report(self):
        with pytest.raises(NotFoundError):
            await tools.update_report(new_id(), {"notes": "x"})

    async def test_invalid_report_id(self):
        with pytest.raises(ValidationError):
            await tools.update_report("nope", {"notes": "x"})


class TestGetListDelete:
    async def test_get(self, station, user):
        report = await tools.create_report(_payload(station.id, user.id))
        assert (await tools.get_report(report["id"]))["id"] == report["id"]

    async def test_get_missing(self):
        with pytest.raises(NotFoundError):
            await tools.get_report(new_id())

    async def test_list_pagination(self, station, user):
        for day in range(1, 4):
            await tools.create_report(
                _payload(station.id, user.id, incidentName=f"Fire {day}"),
                now=datetime(2024, 3, day, tzinfo=ACCRA),
            )

        result = await tools.list_reports(page=2, limit=2)

        assert result["pagination"] == {"current": 2, "pages": 2, "total": 3}
        assert [r["incidentName"] for r in result["data"]] == ["Fire 1"]

    async def test_list_rejects_bad_paging(self):
        with pytest.raises(ValidationError):
            await tools.list_reports(page=0)

    async def test_delete(self, station, user):
        report = await tools.create_report(_payload(station.id, user.id))
        await tools.delete_report(report["id"])
        with pytest.raises(NotFoundError):
            await tools.delete_report(report["id"])


class TestComputeStats:
    async def test_empty_has_all_buckets(self):
        stats = await tools.compute_stats()
        assert stats == {
            "total": 0,
            "byStatus": {"pending": 0, "responding": 0, "resolved": 0, "closed": 0},
            "byPriority": {"low": 0, "medium": 0, "high": 0},
            "byIncidentType": {"fire": 0, "rescue": 0, "medical": 0, "other": 0},
        }

    async def test_counts_by_exact_incident_type(self, station, user):
        for incident_type in ("fire", "fire", "flood", "other"):
            await tools.create_report(_payload(station.id, user.id, incidentType=incident_type))

        stats = await tools.compute_stats(station_id=station.id)

        assert stats["total"] == 4
        assert stats["byIncidentType"] == {"fire": 2, "rescue": 0, "medical": 0, "other": 1}
        assert stats["byStatus"]["pending"] == 4
        assert stats["byPriority"]["high"] == 4

    async def test_date_range(self, station, user):
        for day in (1, 2, 3):
            await tools.create_report(
                _payload(station.id, user.id), now=datetime(2024, 3, day, 12, tzinfo=ACCRA)
            )
        stats = await tools.compute_stats(
            start=datetime(2024, 3, 2, 12), end=datetime(2024, 3, 3, 12)
        )
        assert stats["total"] == 2

    async def test_start_after_end(self):
        with pytest.raises(ValidationError):
            await tools.compute_stats(
                start=datetime(2024, 3, 2, tzinfo=ACCRA), end=datetime(2024, 3, 1, tzinfo=ACCRA)
            )


class TestUnitActions:
    async def test_dispatch(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        result = await tools.dispatch_report(report["id"], now=REPORTED)
        assert result["dispatched"] is True
        assert result["status"] == "responding"
        assert result["dispatchedAt"].startswith("2024-03-01T12:00:00")

    async def test_acts_only_once(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        await tools.dispatch_report(report["id"])
        with pytest.raises(ConflictError, match="dispatched"):
            await tools.decline_report(report["id"], "Busy")

    async def test_requires_active_unit(self, station, user):
        report = await tools.create_report(_payload(station.id, user.id))
        with pytest.raises(ConflictError, match="active unit"):
            await tools.dispatch_report(report["id"])

    async def test_unit_went_off_duty(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        await roster.auto_deactivate_sweep(now=datetime(2100, 1, 1, tzinfo=ACCRA))
        with pytest.raises(ConflictError):
            await tools.dispatch_report(report["id"])

    async def test_decline_requires_reason(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        with pytest.raises(ValidationError, match="reason"):
            await tools.decline_report(report["id"], "  ")

    async def test_decline(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        result = await tools.decline_report(report["id"], " No water tender ")
        assert result["declined"] is True
        assert result["declineReason"] == "No water tender"

    async def test_refer_moves_report(self, station, other_station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))

        result = await tools.refer_report(report["id"], other_station.id, "Closer to Tema")

        assert result["referred"] is True
        assert result["referredToStation"] == other_station.id
        assert result["referredStationDetails"]["name"] == "Tema Fire Station"
        assert result["station"]["id"] == other_station.id
        assert result["unit"] is None
        assert result["department"] is None

    async def test_refer_to_same_station(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        with pytest.raises(ConflictError, match="same station"):
            await tools.refer_report(report["id"], station.id, "Wrong")

    async def test_refer_to_unknown_station(self, station, user, on_duty):
        report = await tools.create_report(_payload(station.id, user.id))
        with pytest.raises(NotFoundError):
            await tools.refer_report(report["id"], new_id(), "Elsewhere")
