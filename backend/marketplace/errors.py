"""Error taxonomy for the marketplace and the single JSON error envelope.

Every error leaving the API is rendered as ``{"kind", "message", "detail"?}``.
``MarketplaceError`` subclasses carry a client-safe ``message`` and optional
``diagnostics`` that are written to the server log only.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

RETRY_LATER = "We could not prepare your download right now. Please try again later."


class MarketplaceError(Exception):
    """Base class for errors that map onto an HTTP error envelope."""

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        detail: Any = None,
        diagnostics: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        self.message = message or self.default_message
        self.detail = detail
        self.diagnostics = diagnostics
        self.headers = headers
        super().__init__(self.message)

    def to_envelope(self) -> dict:
        return error_envelope(self.kind, self.message, self.detail)


class NotAuthenticated(MarketplaceError):
    kind = "not_authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class AccessDenied(MarketplaceError):
    kind = "access_denied"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You have not purchased this dataset"


class DatasetNotFound(MarketplaceError):
    kind = "dataset_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Dataset not found"


class PurchaseNotFound(MarketplaceError):
    kind = "purchase_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Purchase not found"


class EmptyCart(MarketplaceError):
    kind = "empty_cart"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Cart is empty"


class Conflict(MarketplaceError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class SourceMissing(MarketplaceError):
    """The canonical dataset file is absent from storage (data-integrity problem)."""

    kind = "source_missing"
    default_message = RETRY_LATER


class PackagingError(MarketplaceError):
    """The external archiving tool failed; ``diagnostics`` holds its scrubbed output."""

    kind = "packaging_error"
    default_message = RETRY_LATER


class PackagingTimeout(PackagingError):
    kind = "packaging_timeout"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class StreamingError(MarketplaceError):
    """Failure after response headers were committed; never rendered, only logged."""

    kind = "streaming_error"
    default_message = "Archive stream terminated early"


_HTTP_KINDS = {
    400: "bad_request",
    401: "not_authenticated",
    403: "access_denied",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
}


def error_envelope(kind: str, message: str, detail: Any = None) -> dict:
    body = {"kind": kind, "message": message}
    if detail is not None:
        body["detail"] = detail
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.error(
                f"{exc.kind} on {request.method} {request.url.path}: "
                f"{exc.diagnostics or exc.message}"
            )
        else:
            logger.info(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_envelope(),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        kind = _HTTP_KINDS.get(exc.status_code, "http_error")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(kind, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_envelope(
                "validation_error",
                "Request validation failed",
                [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
            ),
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded on {request.url.path} by {request.client.host if request.client else 'unknown'}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=error_envelope("rate_limited", f"Rate limit exceeded: {exc.detail}"),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope("internal_error", "Internal server error"),
        )
