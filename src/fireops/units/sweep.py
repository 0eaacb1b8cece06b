"""Background duty sweep loop.

Runs :func:`fireops.units.roster.auto_deactivate_sweep` once a day at
``duty_sweep_hour`` in the organization timezone. The sweep itself is a
plain coroutine, so an external cron can call ``POST /units/sweep``
instead and disable this loop with ``DUTY_SWEEP_ENABLED=0``.
"""

import asyncio
import logging
from datetime import datetime, time, timedelta

from fireops.core.config import get_org_config, get_timezone, local_now
from fireops.units.roster import auto_deactivate_sweep

logger = logging.getLogger(__name__)


def next_sweep_at(now: datetime) -> datetime:
    """Next sweep time strictly after ``now``."""
    tz = get_timezone()
    local = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    run_time = time(get_org_config().duty_sweep_hour)
    candidate = datetime.combine(local.date(), run_time, tzinfo=tz)
    if candidate <= local:
        candidate = datetime.combine(local.date() + timedelta(days=1), run_time, tzinfo=tz)
    return candidate


async def duty_sweep_loop() -> None:
    """Background loop: sleep until the next sweep time, then sweep.

    Runs forever (until cancelled). All errors are caught so the loop
    never crashes the server.
    """
    hour = get_org_config().duty_sweep_hour
    logger.info("Background duty sweep started (daily at %02d:00)", hour)

    while True:
        now = local_now()
        run_at = next_sweep_at(now)
        await asyncio.sleep((run_at - now).total_seconds())

        try:
            result = await auto_deactivate_sweep()
            if result["deactivatedCount"]:
                logger.info(
                    "Background sweep: deactivated %s",
                    ", ".join(u["name"] for u in result["deactivatedUnits"]),
                )
        except Exception:
            logger.exception("Background duty sweep failed")
