"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.core.exceptions import AppException

logger = structlog.get_logger()


def _field_path(loc: tuple) -> str:
    # Drop the leading "body"/"query"/"path" marker
    parts = [str(part) for part in loc[1:]] or [str(part) for part in loc]
    return ".".join(parts)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_error",
        error=exc.__class__.__name__,
        message=exc.message,
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        **exc.details,
    )

    content = {
        "error": exc.__class__.__name__,
        "message": exc.message,
        "path": str(request.url),
    }
    if exc.details:
        content["details"] = exc.details

    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    logger.warning(
        "request_error",
        error="HTTPException",
        message=exc.detail,
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTPException",
            "message": exc.detail,
            "path": str(request.url),
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request shape errors the same way as business-rule violations.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with one entry per offending field
    """
    errors = [
        {"field": _field_path(tuple(error.get("loc", ()))), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    logger.warning(
        "request_error",
        error="ValidationFailedException",
        method=request.method,
        path=request.url.path,
        errors=errors,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "ValidationFailedException",
            "message": "Validation failed",
            "details": {"errors": errors},
            "path": str(request.url),
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )

    content = {
        "error": "InternalServerError",
        "message": "An unexpected error occurred",
        "path": str(request.url),
    }
    if settings.diagnostics_enabled:
        content["details"] = {"exception": exc.__class__.__name__, "detail": str(exc)}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
    )
