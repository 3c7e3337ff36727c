"""
API error handling
Domain exceptions and request-parsing failures become `{error}` bodies.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.api.responses import PrettyJSONResponse
from app.domain.errors import AuditServiceError, UpstreamError

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid request body"
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


async def audit_error_handler(request: Request, exc: AuditServiceError) -> PrettyJSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("Upstream failure on %s: %s", request.url.path, exc.message)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return PrettyJSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> PrettyJSONResponse:
    return PrettyJSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> PrettyJSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return PrettyJSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuditServiceError, audit_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
