"""
Error taxonomy and the FastAPI handlers that render it.

Every error is an HTTPException subclass, so routes and services raise them
the same way they would raise HTTPException and FastAPI renders {"detail": ...}.
"""

import logging
from typing import Any, Iterable, Mapping

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Server error"

    def __init__(self, detail: str = None, headers: dict = None):
        super().__init__(status_code=type(self).status_code, detail=detail or self.default_detail, headers=headers)


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: str = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Already exists"


class InternalError(AppError):
    """Unexpected failure; the catch-all handler renders every unhandled exception as one."""


def describe_validation_errors(errors: Iterable[Mapping[str, Any]]) -> str:
    """Flatten pydantic error dicts into one readable line."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        where = ".".join(loc)
        parts.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return "; ".join(parts) or ValidationError.default_detail


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": describe_validation_errors(exc.errors())},
    )


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content={"detail": err.detail, "error": str(exc)})


def install_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
