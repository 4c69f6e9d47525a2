import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from apps.backend.services.core_service import CoreError
from apps.backend.services.levels.level_policy import InvalidPointsError
from apps.backend.utils.envelope import error

log = logging.getLogger("canwin.errors")


def install_error_handlers(app: FastAPI) -> None:
    """
    Stable error envelopes. Stack traces go to the log, never to the client.
    """

    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError):
        return error(exc.message, "core_error", exc.status_code)

    @app.exception_handler(InvalidPointsError)
    async def invalid_points_handler(request: Request, exc: InvalidPointsError):
        return error(str(exc), "invalid_points", 400)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in exc.errors()]
        return error(f"Invalid request: {', '.join(f for f in fields if f) or 'body'}", "validation_error", 422)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error("Internal server error", "internal_error", 500)
