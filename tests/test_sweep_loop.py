"""Tests for the background duty sweep schedule."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

import pytest

from fireops.units.sweep import duty_sweep_loop, next_sweep_at

ACCRA = ZoneInfo("Africa/Accra")


class TestNextSweepAt:
    def test_later_same_day(self):
        now = datetime(2024, 1, 2, 6, 30, tzinfo=ACCRA)
        assert next_sweep_at(now) == datetime(2024, 1, 2, 8, 0, tzinfo=ACCRA)

    def test_exactly_at_sweep_time_schedules_tomorrow(self):
        now = datetime(2024, 1, 2, 8, 0, tzinfo=ACCRA)
        assert next_sweep_at(now) == datetime(2024, 1, 3, 8, 0, tzinfo=ACCRA)

    def test_after_sweep_time(self):
        now = datetime(2024, 12, 31, 23, 0, tzinfo=ACCRA)
        assert next_sweep_at(now) == datetime(2025, 1, 1, 8, 0, tzinfo=ACCRA)

    def test_other_timezone_input_converted(self):
        now = datetime(2024, 1, 2, 3, 0, tzinfo=ZoneInfo("America/New_York"))  # 08:00 UTC
        assert next_sweep_at(now) == datetime(2024, 1, 3, 8, 0, tzinfo=ACCRA)


class TestDutySweepLoop:
    async def test_sweep_failure_does_not_stop_loop(self):
        sleeps = 0

        async def fake_sleep(seconds):
            nonlocal sleeps
            sleeps += 1
            if sleeps > 2:
                raise asyncio.CancelledError

        sweep = AsyncMock(side_effect=[RuntimeError("boom"), {"deactivatedCount": 0}])
        with (
            patch("fireops.units.sweep.asyncio.sleep", fake_sleep),
            patch("fireops.units.sweep.auto_deactivate_sweep", sweep),
            pytest.raises(asyncio.CancelledError),
        ):
            await duty_sweep_loop()

        assert sweep.await_count == 2
