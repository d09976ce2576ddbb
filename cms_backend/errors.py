"""
Error taxonomy and the FastAPI handlers that map it onto HTTP responses.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CmsError(Exception):
    """Base class for errors raised below the route layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CmsError):
    """A document failed entity validation; carries every failed rule."""

    status_code = 400

    def __init__(self, messages: list[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(", ".join(self.messages))


class DuplicateKeyError(CmsError):
    status_code = 400

    def __init__(
        self, collection: str, path: str, value: object, message: str | None = None
    ):
        self.collection = collection
        self.path = path
        self.value = value
        super().__init__(
            message or f"Duplicate value {value!r} for unique key {collection}.{path}"
        )


class InvalidIdentifierError(CmsError):
    status_code = 400


class NotFoundError(CmsError):
    status_code = 404


def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def _cms_error_handler(request: Request, exc: CmsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _envelope(exc.status_code, exc.message)


async def _http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    response = _envelope(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return _envelope(400, ", ".join(messages) or "Invalid request")


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s failed", request.method, request.url.path)
    return _envelope(500, "Server error", error=str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CmsError, _cms_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
