import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import ReservationSystemError, SlotConflict

logger = logging.getLogger(__name__)


def register_exception_handlers(app):
    """
    Register global exception handlers for standardized error responses.

    Every error body has ``error``, ``detail`` and ``path``; workflow errors
    add their ``kind`` and conflicts add the colliding ``conflicts``.
    """

    @app.exception_handler(ReservationSystemError)
    async def reservation_error_handler(request: Request, exc: ReservationSystemError):
        content = {
            "error": exc.kind,
            "kind": exc.kind,
            "detail": exc.detail,
            "path": str(request.url.path),
        }
        if isinstance(exc, SlotConflict):
            content["conflicts"] = jsonable_encoder(exc.conflicts)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation error",
                "detail": "Invalid request data",
                "path": str(request.url.path),
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTP error",
                "detail": exc.detail,
                "path": str(request.url.path),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Rate limit exceeded. Please try again later.",
                "error": "too_many_requests",
                "path": str(request.url.path),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred",
                "path": str(request.url.path),
            },
        )
