"""HTTP route handlers for fire reports.

Routes:
- GET    /fire-reports                         → List reports (paged)
- POST   /fire-reports                         → Create report
- GET    /fire-reports/stats                   → Counts by status/priority/type
- GET    /fire-reports/{report_id}             → Get report
- PATCH  /fire-reports/{report_id}             → Update report
- DELETE /fire-reports/{report_id}             → Delete report
- POST   /fire-reports/{report_id}/dispatch    → Duty unit dispatches
- POST   /fire-reports/{report_id}/decline     → Duty unit declines (``reason``)
- POST   /fire-reports/{report_id}/refer       → Refer elsewhere (``stationId``, ``reason``)
"""

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from fireops.core.http import json_errors, ok, query_datetime, query_int, read_json
from fireops.reports import tools


@json_errors
async def list_reports(request: Request) -> Response:
    params = request.query_params
    result = await tools.list_reports(
        station_id=params.get("stationId") or None,
        reporter_id=params.get("reporterId") or None,
        status=params.get("status") or None,
        priority=params.get("priority") or None,
        page=query_int(request, "page", 1),
        limit=query_int(request, "limit", 10),
    )
    return ok(result)


@json_errors
async def create_report(request: Request) -> Response:
    payload = await read_json(request)
    return ok(await tools.create_report(payload), status_code=201)


@json_errors
async def report_stats(request: Request) -> Response:
    stats = await tools.compute_stats(
        station_id=request.query_params.get("stationId") or None,
        start=query_datetime(request, "startDate"),
        end=query_datetime(request, "endDate"),
    )
    return ok(stats)


@json_errors
async def get_report(request: Request) -> Response:
    return ok(await tools.get_report(request.path_params["report_id"]))


@json_errors
async def update_report(request: Request) -> Response:
    patch = await read_json(request)
    return ok(await tools.update_report(request.path_params["report_id"], patch))


@json_errors
async def delete_report(request: Request) -> Response:
    await tools.delete_report(request.path_params["report_id"])
    return ok()


@json_errors
async def dispatch_report(request: Request) -> Response:
    return ok(await tools.dispatch_report(request.path_params["report_id"]))


@json_errors
async def decline_report(request: Request) -> Response:
    body = await read_json(request)
    return ok(await tools.decline_report(request.path_params["report_id"], body.get("reason")))


@json_errors
async def refer_report(request: Request) -> Response:
    body = await read_json(request)
    report = await tools.refer_report(
        request.path_params["report_id"], body.get("stationId"), body.get("reason")
    )
    return ok(report)


routes = [
    Route("/fire-reports", list_reports, methods=["GET"]),
    Route("/fire-reports", create_report, methods=["POST"]),
    Route("/fire-reports/stats", report_stats, methods=["GET"]),
    Route("/fire-reports/{report_id}", get_report, methods=["GET"]),
    Route("/fire-reports/{report_id}", update_report, methods=["PATCH"]),
    Route("/fire-reports/{report_id}", delete_report, methods=["DELETE"]),
    Route("/fire-reports/{report_id}/dispatch", dispatch_report, methods=["POST"]),
    Route("/fire-reports/{report_id}/decline", decline_report, methods=["POST"]),
    Route("/fire-reports/{report_id}/refer", refer_report, methods=["POST"]),
]
