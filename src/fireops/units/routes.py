"""HTTP route handlers for units and the duty roster.

Routes:
- GET    /units                       → List units (``?department=<id>``)
- POST   /units                       → Create unit
- POST   /units/sweep                 → Run the duty sweep now (cron hook)
- GET    /units/{unit_id}             → Get unit
- PATCH  /units/{unit_id}             → Update unit
- DELETE /units/{unit_id}             → Delete unit
- POST   /units/{unit_id}/activate    → Put unit on duty
- POST   /units/{unit_id}/deactivate  → Take unit off duty
"""

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from fireops.core.http import json_errors, ok, read_json
from fireops.units import roster, tools


@json_errors
async def list_units(request: Request) -> Response:
    department_id = request.query_params.get("department") or None
    return ok(await tools.list_units(department_id))


@json_errors
async def create_unit(request: Request) -> Response:
    payload = await read_json(request)
    return ok(await tools.create_unit(payload), status_code=201)


@json_errors
async def get_unit(request: Request) -> Response:
    return ok(await tools.get_unit(request.path_params["unit_id"]))


@json_errors
async def update_unit(request: Request) -> Response:
    patch = await read_json(request)
    return ok(await tools.update_unit(request.path_params["unit_id"], patch))


@json_errors
async def delete_unit(request: Request) -> Response:
    await tools.delete_unit(request.path_params["unit_id"])
    return ok()


@json_errors
async def activate_unit(request: Request) -> Response:
    return ok(await roster.activate(request.path_params["unit_id"]))


@json_errors
async def deactivate_unit(request: Request) -> Response:
    return ok(await roster.deactivate(request.path_params["unit_id"]))


@json_errors
async def sweep_units(request: Request) -> Response:
    """Run the auto-deactivation sweep immediately."""
    return ok(await roster.auto_deactivate_sweep())


routes = [
    Route("/units", list_units, methods=["GET"]),
    Route("/units", create_unit, methods=["POST"]),
    Route("/units/sweep", sweep_units, methods=["POST"]),
    Route("/units/{unit_id}", get_unit, methods=["GET"]),
    Route("/units/{unit_id}", update_unit, methods=["PATCH"]),
    Route("/units/{unit_id}", delete_unit, methods=["DELETE"]),
    Route("/units/{unit_id}/activate", activate_unit, methods=["POST"]),
    Route("/units/{unit_id}/deactivate", deactivate_unit, methods=["POST"]),
]
