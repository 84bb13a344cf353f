"""Error taxonomy and the handlers that render it.

Every error response has the shape ``{"error", "message", "details"?}``.
Data-layer and storage failures are logged in full server-side and the
caller only sees a generic message with a short reference id.
"""

import logging
import uuid
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "An internal error occurred. Please try again later."

_HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "authentication_required",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    429: "rate_limited",
}


class FeedLoopError(Exception):
    """Base exception for all API-visible errors."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FeedLoopError):
    """Malformed or out-of-range input."""

    status_code = 400
    error = "validation_error"


class AuthenticationError(FeedLoopError):
    """Missing, invalid, or revoked session."""

    status_code = 401
    error = "authentication_required"

    def __init__(self, message: str = "Authentication required", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class AuthorizationError(FeedLoopError):
    """
    Valid session without access to the project.

    Rendered as not-found so inaccessible projects are indistinguishable
    from missing ones.
    """

    status_code = 404
    error = "not_found"

    def __init__(
        self, message: str = "Project not found or access denied", **kwargs: Any
    ) -> None:
        super().__init__(message, **kwargs)


class PermissionDeniedError(FeedLoopError):
    """Project member attempting an owner/inviter-only action."""

    status_code = 403
    error = "forbidden"


class NotFoundError(FeedLoopError):
    status_code = 404
    error = "not_found"


class ConflictError(FeedLoopError):
    status_code = 409
    error = "conflict"


class RateLimitedError(FeedLoopError):
    """Fixed-window throttle rejected the attempt."""

    status_code = 429
    error = "rate_limited"

    def __init__(self, message: str, *, retry_after: int, headers: dict[str, str] | None = None) -> None:
        super().__init__(message, details={"retry_after": retry_after})
        self.retry_after = retry_after
        self.headers = headers or {}


class UpstreamUnavailable(FeedLoopError):
    """Data store or object storage failed; never carries internal detail."""

    status_code = 500
    error = "internal_error"


def error_body(error: str, message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": error, "message": message}
    if details is not None:
        body["details"] = details
    return body


def log_internal_error(exc: Exception, *, context: str | None = None) -> str:
    """Log an unexpected failure with full detail and return its reference id."""
    error_id = uuid.uuid4().hex[:8]
    logger.error(
        "internal_error ref=%s context=%s type=%s",
        error_id,
        context,
        type(exc).__name__,
        exc_info=exc,
    )
    return error_id


def upstream_unavailable(exc: Exception, *, context: str | None = None) -> UpstreamUnavailable:
    """Translate a data-layer exception into a generic 500 error."""
    error_id = log_internal_error(exc, context=context)
    return UpstreamUnavailable(f"{INTERNAL_ERROR} (ref: {error_id})")


# =============================================================================
# Exception handlers
# =============================================================================

async def feedloop_error_handler(request: Request, exc: FeedLoopError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after), **exc.headers}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.error, exc.message, exc.details),
        headers=headers,
    )


_LOC_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _field_from_loc(loc: tuple) -> str:
    parts = list(loc)
    if parts and parts[0] in _LOC_PREFIXES:
        parts = parts[1:]
    return ".".join(str(p) for p in parts)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": _field_from_loc(tuple(err.get("loc", ()))), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed path=%s fields=%s", request.url.path, [d["field"] for d in details])
    return JSONResponse(
        status_code=400,
        content=error_body("validation_error", "Validation failed", details),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = _HTTP_ERROR_CODES.get(exc.status_code, "internal_error" if exc.status_code >= 500 else "error")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error, message),
        headers=getattr(exc, "headers", None),
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    # Plain function: SlowAPIMiddleware calls it directly, outside Starlette's dispatch
    response = JSONResponse(
        status_code=429,
        content=error_body("rate_limited", f"Rate limit exceeded: {exc.detail}"),
    )
    limiter = getattr(request.app.state, "limiter", None)
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if limiter is not None and view_rate_limit is not None:
        response = limiter._inject_headers(response, view_rate_limit)
    return response


async def data_layer_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = upstream_unavailable(exc, context=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=error.status_code,
        content=error_body(error.error, error.message),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeedLoopError, feedloop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(SQLAlchemyError, data_layer_error_handler)
    app.add_exception_handler(BotoCoreError, data_layer_error_handler)
    app.add_exception_handler(ClientError, data_layer_error_handler)
