import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class PMSError(Exception):
    """Base for errors that map onto an HTTP response with a JSON ``message`` body."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, extra: dict | None = None):
        self.message = message or self.default_message
        self.extra = extra or {}
        super().__init__(self.message)


class ValidationError(PMSError):
    status_code = 400
    default_message = "Invalid request"


class NotAuthenticatedError(PMSError):
    status_code = 401
    default_message = "Unauthorized"


class PermissionError(PMSError):  # noqa: A001
    status_code = 403
    default_message = "Insufficient permissions"


class EditForbiddenError(PMSError):
    status_code = 403
    default_message = "Cannot edit reservation after checkout or cancellation"


class NotFoundError(PMSError):
    status_code = 404
    default_message = "Not found"


class ConflictError(PMSError):
    status_code = 409
    default_message = "Conflict"


class PersistenceError(PMSError):
    status_code = 500
    default_message = "Database operation failed"


def _error_response(status_code: int, message: str, extra: dict | None = None) -> JSONResponse:
    body = {"message": message}
    if extra:
        body.update(jsonable_encoder(extra))
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PMSError)
    async def pms_error_handler(request: Request, exc: PMSError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message, exc.extra)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        first = errors[0] if errors else None
        message = f"{first['field']}: {first['message']}" if first and first["field"] else "Invalid request"
        return _error_response(400, message, {"errors": errors})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")
