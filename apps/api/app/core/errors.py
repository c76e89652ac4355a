"""API error types and the global exception handlers that render them."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Base class for errors that map directly onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class BadRequestError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ApiError):
    status_code = status.HTTP_409_CONFLICT


_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def field_error(field: str, error: str) -> dict[str, str]:
    return {"field": field, "error": error}


def enum_error(field: str, allowed: list[str]) -> dict[str, Any]:
    choices = ", ".join(allowed)
    return {"field": field, "errors": {"isEnum": f"{field} must be one of: {choices}"}}


def _error_field(loc: tuple[Any, ...]) -> str:
    # ("body", "confirmationString") -> "confirmationString"
    parts = [str(part) for part in loc if part not in _LOCATION_PREFIXES]
    if parts:
        return ".".join(parts)
    return str(loc[-1]) if loc else ""


def format_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic errors into ``{field, error}`` items.

    Enum and literal mismatches are reported as ``{field, errors: {isEnum}}``
    so clients can tell "wrong choice" apart from "wrong shape".
    """

    formatted: list[dict[str, Any]] = []
    for error in errors:
        field = _error_field(tuple(error.get("loc", ())))
        message = error.get("msg", "invalid value")
        if error.get("type") in {"enum", "literal_error"}:
            formatted.append({"field": field, "errors": {"isEnum": message}})
        else:
            formatted.append(field_error(field, message))
    return formatted


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, message=exc.message)
    else:
        logger.info(
            "api_error",
            path=request.url.path,
            status_code=exc.status_code,
            message=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = format_validation_errors(list(exc.errors()))
    logger.info("request_validation_failed", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
