"""Exception handlers and request logging middleware.

Alert construction errors are Pydantic ``ValidationError``s raised inside
route handlers (not request-body parsing), so they are mapped to HTTP 422
here. Request logging records method, path, status code, and duration.
"""

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Domain exception -> HTTP status handlers
# ---------------------------------------------------------------------------


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Map a model ValidationError to HTTP 422 with a JSON-safe error list."""
    errors = [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    logger.info("Rejected %s %s: %d validation error(s)", request.method, request.url.path, len(errors))
    return JSONResponse(status_code=422, content={"detail": errors})


def register_exception_handlers(app: FastAPI) -> None:
    """Register domain exception handlers on the FastAPI application."""
    app.add_exception_handler(ValidationError, _validation_error_handler)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration.

    The health check and the scheduled check are polled constantly, so they
    are logged at DEBUG.
    """

    _QUIET_PATHS = frozenset({"/api/health", "/api/cron/check-alerts"})

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        level = logging.DEBUG if request.url.path in self._QUIET_PATHS else logging.INFO
        logger.log(
            level,
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
