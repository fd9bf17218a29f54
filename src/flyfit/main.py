"""FlyFit Progression Server - Entry point.

Runs the HTTP API and the MCP server for the progression engine.
Uses Starlette with the MCP HTTP app mounted at root.
"""

import contextlib
import logging
import os

import uvicorn
from pydantic import TypeAdapter, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from .core.errors import ErrorKind
from .core.models import ProgressEvent
from .shell.mcp_server import current_user_id, get_service, mcp, result_to_dict, set_service
from .shell.service import ProgressService


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

USER_HEADER = "X-User-Id"

_event_adapter = TypeAdapter(ProgressEvent)


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "flyfit-progress"})


def _request_user(request: Request) -> str | None:
    user_id = request.headers.get(USER_HEADER, "").strip()
    return user_id or None


async def get_progress(request: Request) -> JSONResponse:
    """Return the caller's progress overview."""
    user_id = _request_user(request)
    if user_id is None:
        return JSONResponse({"error": f"{USER_HEADER} header is required"}, status_code=400)

    try:
        return JSONResponse(get_service().summary(user_id))
    except Exception as e:
        logger.error("Failed to load progress: %s", str(e))
        return JSONResponse({"error": "Failed to load progress."}, status_code=500)


async def post_event(request: Request) -> JSONResponse:
    """Apply one progression event, e.g. {"kind": "add_water", "amount": 250}."""
    user_id = _request_user(request)
    if user_id is None:
        return JSONResponse({"error": f"{USER_HEADER} header is required"}, status_code=400)

    try:
        body = await request.json()
        event = _event_adapter.validate_python(body)
    except ValidationError as e:
        return JSONResponse({"error": "Invalid event", "details": e.errors(include_url=False)}, status_code=400)
    except ValueError:
        return JSONResponse({"error": "Request body must be JSON"}, status_code=400)

    try:
        result = get_service().apply(user_id, event)
    except Exception as e:
        logger.error("Event processing failed: %s", str(e))
        return JSONResponse({"error": "Event processing failed."}, status_code=500)

    status_code = 200
    if result.error is not None:
        status_code = 409 if result.error.kind is ErrorKind.INVALID_TRANSITION else 400
    return JSONResponse(result_to_dict(result), status_code=status_code)


# ==================== User Middleware ====================


class UserContextMiddleware(BaseHTTPMiddleware):
    """Expose the X-User-Id header to MCP tools through a context variable."""

    async def dispatch(self, request: Request, call_next):
        user_id = _request_user(request)
        if user_id is not None:
            current_user_id.set(user_id)
            logger.debug("Request for user: %s", user_id[:8])
        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(service: ProgressService | None = None) -> Starlette:
    """Create the Starlette application with MCP at root.

    Args:
        service: Progress service to use; built from the environment on first
            request when omitted
    """
    if service is not None:
        set_service(service)

    mcp_app = mcp.streamable_http_app()

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        async with mcp_app.router.lifespan_context(app):
            yield
        set_service(None)

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/progress", get_progress, methods=["GET"]),
        Route("/events", post_event, methods=["POST"]),
        # Mount MCP app at root - it handles /mcp/ path internally
        Mount("/", app=mcp_app),
    ]

    return Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["http://localhost:5173", "capacitor://localhost"],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(UserContextMiddleware),
        ],
        lifespan=lifespan,
    )


# Create app at module level for Cloud Run
app = create_app()


def main() -> None:
    """Run the server."""
    port = int(os.environ.get("PORT", 8080))
    host = os.environ.get("HOST", "0.0.0.0")

    logger.info("Starting FlyFit progression server on %s:%d", host, port)

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
