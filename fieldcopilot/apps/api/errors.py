from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fieldcopilot.core.errors import FieldCopilotError
from fieldcopilot.persistence.guards import TenantPredicateError


logger = logging.getLogger(__name__)


def error_response(message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    # Every failure shares the {"error": message} body the mobile client parses.
    return JSONResponse(content={"error": message}, status_code=status_code, headers=headers)


async def copilot_exception_handler(request: Request, exc: FieldCopilotError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "request_failed path=%s status=%s error=%s",
            request.url.path,
            exc.status_code,
            type(exc).__name__,
        )
    return error_response(exc.message, exc.status_code)


async def starlette_http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Query/path coercion failures are client errors, reported without internals.
    errors = exc.errors()
    field = None
    if errors:
        loc = errors[0].get("loc") or ()
        field = loc[-1] if loc else None
    message = f"Invalid {field}" if field else "Invalid request"
    return error_response(message, 400)


async def tenant_predicate_exception_handler(
    request: Request, exc: TenantPredicateError
) -> JSONResponse:
    # A query without a tenant is a server bug; refuse rather than leak rows.
    logger.error("tenant_predicate_missing path=%s", request.url.path)
    return error_response("Internal server error", 500)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error body.
    logger.exception("unhandled_exception path=%s", request.url.path)
    return error_response("Internal server error", 500)
