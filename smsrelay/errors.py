"""
Error kinds returned by the services and the HTTP handlers that render them.

Expected failures (validation, auth, persistence) travel as ServiceError
values. Only unclassified exceptions reach the catch-all handler below.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from smsrelay.schemas import ErrorResponse

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    AUTH = "auth_error"
    PERSISTENCE = "persistence_error"
    GATEWAY = "gateway_error"


# Gateway errors never reach the caller, so they have no status here
STATUS_CODES = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.AUTH: 401,
    ErrorKind.PERSISTENCE: 422,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str

    @property
    def status_code(self) -> int:
        return STATUS_CODES.get(self.kind, 500)


def error_response(error: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=ErrorResponse(error=error.message).model_dump(),
    )


def add_exception_handlers(app: FastAPI) -> None:
    """
    Registers exception handlers with the FastAPI app.
    All of them answer with the {"error": ...} body.
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            messages.append(f"{field} {err.get('msg', 'is invalid')}".strip())
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(error=", ".join(messages) or "Invalid request").model_dump(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {exc}",
            extra={"method": request.method, "path": request.url.path},
            exc_info=True,
        )
        # Rendered outside RequestLoggingMiddleware, so the id is attached here
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=GENERIC_ERROR_MESSAGE).model_dump(),
            headers={"X-Request-ID": request_id} if request_id else None,
        )
