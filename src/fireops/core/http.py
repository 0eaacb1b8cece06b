"""JSON response helpers shared by the Starlette route handlers.

Handlers return ``{"success": true, "data": ...}`` on success. Errors
from :mod:`fireops.core.errors` become ``{"success": false, ...}`` with
the error's status code; anything else is logged and returned as 500.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from fireops.core.errors import OpsError, ValidationError

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response]]


def ok(data: object = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


def error_response(exc: OpsError) -> JSONResponse:
    return JSONResponse({"success": False, **exc.to_dict()}, status_code=exc.status_code)


def json_errors(handler: Handler) -> Handler:
    """Wrap a route handler so raised errors become JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except OpsError as e:
            if e.status_code >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, e)
            return error_response(e)
        except Exception:
            logger.exception("Unhandled error in %s %s", request.method, request.url.path)
            return error_response(OpsError("Internal server error"))

    return wrapper


async def read_json(request: Request) -> dict:
    """Parse the request body as a JSON object.

    Raises:
        ValidationError: If the body is not valid JSON or not an object
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("JSON body must be an object")
    return body


def query_int(request: Request, name: str, default: int) -> int:
    """Read an integer query parameter.

    Raises:
        ValidationError: If the value is not an integer
    """
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be an integer") from e


def query_datetime(request: Request, name: str) -> datetime | None:
    """Read an ISO 8601 date or datetime query parameter.

    Naive values are left naive; callers decide which timezone they mean.

    Raises:
        ValidationError: If the value is not ISO 8601
    """
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be an ISO 8601 date") from e
