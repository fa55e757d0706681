"""JSON error envelopes and global exception handlers.

Every error response has the shape ``{"success": false, "error": "<message>"}``.
Catalogue errors are mapped via ``catalogue.http.error_mapping``; framework
errors (unknown route, wrong method, request validation) and unexpected
exceptions are rendered in the same envelope.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from catalogue.http.error_mapping import INTERNAL_ERROR, lookup
from catalogue.logic.errors import CatalogueError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": message},
        status_code=status_code,
        headers=headers or None,
    )


async def handle_catalogue_error(request: Request, exc: CatalogueError) -> JSONResponse:  # noqa: D401
    status_code, message = lookup(exc)
    if status_code >= 500:
        logger.error(
            "request_failed method=%s path=%s error=%s detail=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.detail,
        )
    else:
        logger.info(
            "request_rejected method=%s path=%s status=%s error=%s detail=%s",
            request.method,
            request.url.path,
            status_code,
            type(exc).__name__,
            exc.detail,
        )
    return error_response(status_code, message)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    headers = exc.headers if isinstance(exc.headers, dict) else None
    return error_response(int(exc.status_code), str(exc.detail), headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    logger.info("request_validation_failed path=%s errors=%s", request.url.path, len(exc.errors()))
    return error_response(400, "Invalid request")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error method=%s path=%s", request.method, request.url.path, exc_info=exc)
    return error_response(500, INTERNAL_ERROR)


__all__ = [
    "error_response",
    "handle_catalogue_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
