"""
@file exceptions.py
@brief Domain error taxonomy and centralized exception handlers
@details
Defines the errors raised by the aggregation core and the FastAPI handlers
that turn them (and HTTP, validation and database errors) into consistent
JSON error responses.

Errors are scoped to a single POI/region pair. Batch code catches them per
POI and records the outcome; the HTTP layer maps them to status codes.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi import Request

logger = logging.getLogger(__name__)


class CatchstatError(Exception):
    """Base class for all aggregation errors."""

    code = "catchstat_error"
    status_code = 500


class CRSMismatchError(CatchstatError):
    """Two inputs to one computation declare different coordinate systems."""

    code = "crs_mismatch"
    status_code = 422

    def __init__(self, expected, actual, context: str = ""):
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(f"CRS mismatch{where}: expected {_crs_label(expected)}, got {_crs_label(actual)}")


class InvalidCRSError(CatchstatError):
    """A coordinate reference system identifier could not be resolved."""

    code = "invalid_crs"
    status_code = 422


class GeometryError(CatchstatError):
    """A polygon is invalid and could not be repaired."""

    code = "geometry_error"
    status_code = 422


class NoOverlapError(CatchstatError):
    """The catchment overlaps no region with positive area."""

    code = "no_overlap"
    status_code = 404


def _crs_label(crs) -> str:
    if crs is None:
        return "None"
    to_string = getattr(crs, "to_string", None)
    return to_string() if to_string else str(crs)


async def catchstat_exception_handler(request: Request, exc: CatchstatError):
    """
    @brief Domain error handler
    @details Maps aggregation errors to their status code with a stable error code.
    """
    logger.warning(f"{exc.code} handling {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "status_code": exc.status_code,
            "message": str(exc)
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """
    @brief Custom HTTP exception handler
    @details Provides consistent error responses across the API.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": str(exc.detail),
            "status_code": exc.status_code,
            "message": f"Request failed with HTTP {exc.status_code}"
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    @brief Custom validation error handler
    @details Provides user-friendly validation error messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "details": exc.errors(),
            "message": "Request validation failed. Check parameters and try again."
        }
    )


async def database_exception_handler(request: Request, exc: Exception):
    """
    @brief Database connectivity handler
    @details Returns 503 so clients can tell maintenance mode from a server fault.
    """
    logger.error(f"Database error handling {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "Service unavailable",
            "status_code": 503,
            "message": "Database connection failed. System is in maintenance mode."
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    @brief Catch-all exception handler
    @details
    Handles unexpected exceptions gracefully.
    Logs full error for debugging while returning safe message to client.
    """
    logger.exception(f"Unexpected error handling {request.url}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "status_code": 500,
            "message": "An unexpected error occurred. Please try again later."
        }
    )
