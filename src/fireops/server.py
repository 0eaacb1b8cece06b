"""Fire operations HTTP API.

Serves unit/duty roster and fire report endpoints, and runs the daily
duty sweep in the background.

Run locally::

    uv run fireops-server

Or with uvicorn::

    uv run uvicorn fireops.server:app --host 0.0.0.0 --port 8000
"""

import asyncio
import contextlib
import logging
import os

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from fireops.core.config import get_org_config, is_sweep_enabled
from fireops.reports.routes import routes as report_routes
from fireops.units.routes import routes as unit_routes
from fireops.units.sweep import duty_sweep_loop

logger = logging.getLogger(__name__)

# Module-level so it runs on import (uvicorn reimports for the app)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.cosmos._cosmos_http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)

load_dotenv()


async def health(request: Request) -> JSONResponse:
    """Liveness check."""
    return JSONResponse({"status": "ok", "service": get_org_config().company_name})


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    """Start the background duty sweep for the lifetime of the app."""
    task = None
    if is_sweep_enabled():
        task = asyncio.create_task(duty_sweep_loop())
    else:
        logger.info("Background duty sweep disabled (DUTY_SWEEP_ENABLED)")

    yield

    if task is not None:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


app = Starlette(
    routes=[Route("/health", health), *unit_routes, *report_routes],
    lifespan=lifespan,
)


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info("Starting fire operations server on %s:%d", host, port)
    uvicorn.run(
        "fireops.server:app",
        host=host,
        port=port,
        log_level="info",
    )
