"""Async Cosmos DB operations for fire report documents.

``create`` enforces the referential checks a report needs before it is
persisted: its station must exist, and its reporter must exist in the
collection named by ``reporter_type``.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import ClassVar

from fireops.core.cosmos import CosmosStore
from fireops.core.errors import NotFoundError
from fireops.core.models import iso_utc, to_utc, utcnow
from fireops.people.store import PersonnelStore, UserStore
from fireops.reports.models import FireReport
from fireops.stations.store import StationStore

logger = logging.getLogger(__name__)

# Bucketed fields for stats, keyed by their stored (camelCase) name
_BUCKET_FIELDS = ("status", "priority", "incidentType")


class FireReportStore(CosmosStore):
    """Async CRUD and aggregation for fire reports.

    Usage::

        async with FireReportStore() as store:
            report = await store.create(doc)
            stats = await store.count_by_buckets(station_id=report.station)
    """

    CONTAINER_NAME = "fire-reports"
    _memory: ClassVar[dict[str, dict]] = {}

    async def create(self, doc: FireReport) -> FireReport:
        """Create a report after checking its station and reporter exist.

        Raises:
            NotFoundError: If the station or reporter does not exist
        """
        await self._check_references(doc)

        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created fire report %s (in-memory, station=%s)", doc.id, doc.station)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created fire report %s (station=%s)", doc.id, doc.station)
        return FireReport.from_cosmos(result)

    async def get_by_id(self, report_id: str) -> FireReport | None:
        """Get a report by ID, or None if it does not exist."""
        data = await self._read(report_id)
        return FireReport.from_cosmos(data) if data else None

    async def update(self, doc: FireReport) -> FireReport:
        """Replace an existing report, stamping ``updated_at``."""
        doc.updated_at = utcnow()
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Updated fire report %s (in-memory)", doc.id)
            return doc

        result = await self._container.replace_item(item=doc.id, body=doc.to_cosmos())
        logger.info("Updated fire report %s", doc.id)
        return FireReport.from_cosmos(result)

    async def delete(self, report_id: str) -> bool:
        """Delete a report. Returns False if it did not exist."""
        deleted = await self._delete(report_id)
        if deleted:
            logger.info("Deleted fire report %s", report_id)
        return deleted

    async def list_reports(
        self,
        *,
        station_id: str | None = None,
        reporter_id: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[FireReport], int]:
        """List reports newest first, with the total count before paging.

        Returns:
            Tuple of (page of reports, total matching reports)
        """
        filters = {
            "station_id": station_id,
            "reporter_id": reporter_id,
            "status": status,
            "priority": priority,
            "start": start,
            "end": end,
        }

        if self._in_memory:
            matches = self._filter_memory(**filters)
            matches.sort(key=lambda r: r.reported_at, reverse=True)
            return matches[offset : offset + limit], len(matches)

        where_clause, parameters = _where(**filters)
        total_items = await self._query(f"SELECT VALUE COUNT(1) FROM c{where_clause}", parameters)
        total = total_items[0] if total_items else 0

        page_params = [
            *parameters,
            {"name": "@offset", "value": offset},
            {"name": "@limit", "value": limit},
        ]
        items = await self._query(
            f"SELECT * FROM c{where_clause} ORDER BY c.reportedAt DESC "
            "OFFSET @offset LIMIT @limit",
            page_params,
        )
        return [FireReport.from_cosmos(item) for item in items], total

    async def count_by_buckets(
        self,
        *,
        station_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        """Count matching reports by status, priority and incident type.

        Returns:
            ``{"total": n, "status": {value: n}, "priority": {...}, "incidentType": {...}}``
            with only the values that occur
        """
        if self._in_memory:
            docs = [
                r.to_cosmos()
                for r in self._filter_memory(station_id=station_id, start=start, end=end)
            ]
            counts: dict = {"total": len(docs)}
            for field in _BUCKET_FIELDS:
                counts[field] = dict(Counter(d.get(field) for d in docs))
            return counts

        where_clause, parameters = _where(station_id=station_id, start=start, end=end)
        total_items = await self._query(f"SELECT VALUE COUNT(1) FROM c{where_clause}", parameters)
        counts = {"total": total_items[0] if total_items else 0}
        for field in _BUCKET_FIELDS:
            rows = await self._query(
                f"SELECT c.{field} AS bucket, COUNT(1) AS n FROM c{where_clause} "
                f"GROUP BY c.{field}",
                parameters,
            )
            counts[field] = {row["bucket"]: row["n"] for row in rows if "bucket" in row}
        return counts

    async def _check_references(self, doc: FireReport) -> None:
        async with StationStore() as stations:
            if await stations.get_by_id(doc.station) is None:
                raise NotFoundError("Referenced station does not exist", station=doc.station)

        if doc.reporter_type == "User":
            async with UserStore() as users:
                found = await users.get_by_id(doc.reporter_id) is not None
        else:
            async with PersonnelStore() as personnel:
                found = await personnel.get_by_id(doc.reporter_id) is not None
        if not found:
            raise NotFoundError(
                f"Referenced {doc.reporter_type} does not exist", reporterId=doc.reporter_id
            )

    def _filter_memory(
        self,
        *,
        station_id: str | None = None,
        reporter_id: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[FireReport]:
        """Filter in-memory reports (dev mode only)."""
        start = to_utc(start)
        end = to_utc(end)
        results = []
        for data in self._memory.values():
            report = FireReport.from_cosmos(data)
            if station_id and report.station != station_id:
                continue
            if reporter_id and report.reporter_id != reporter_id:
                continue
            if status and report.status != status:
                continue
            if priority and report.priority != priority:
                continue
            if start and report.reported_at < start:
                continue
            if end and report.reported_at > end:
                continue
            results.append(report)
        return results


def _where(
    *,
    station_id: str | None = None,
    reporter_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> tuple[str, list[dict]]:
    """Build a parameterized WHERE clause for report queries."""
    conditions = []
    parameters: list[dict] = []

    if station_id:
        conditions.append("c.station = @station")
        parameters.append({"name": "@station", "value": station_id})
    if reporter_id:
        conditions.append("c.reporterId = @reporter")
        parameters.append({"name": "@reporter", "value": reporter_id})
    if status:
        conditions.append("c.status = @status")
        parameters.append({"name": "@status", "value": status})
    if priority:
        conditions.append("c.priority = @priority")
        parameters.append({"name": "@priority", "value": priority})
    if start:
        conditions.append("c.reportedAt >= @start")
        parameters.append({"name": "@start", "value": iso_utc(start)})
    if end:
        conditions.append("c.reportedAt <= @end")
        parameters.append({"name": "@end", "value": iso_utc(end)})

    where_clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    return where_clause, parameters
