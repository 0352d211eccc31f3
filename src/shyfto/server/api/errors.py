"""Exception handlers producing the ``{"error": message}`` response shape."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shyfto.core.errors import (
    ConfigurationError,
    DecodeError,
    InvalidEnvelopeError,
    InvalidOperationError,
    NotFoundError,
    PartialDeletionError,
    ShyftoError,
    StoreError,
    StoreTimeoutError,
)

logger = logging.getLogger(__name__)

# Most specific classes first: the first isinstance match wins
ERROR_STATUS: list[tuple[type[ShyftoError], int]] = [
    (InvalidOperationError, status.HTTP_400_BAD_REQUEST),
    (InvalidEnvelopeError, status.HTTP_400_BAD_REQUEST),
    (DecodeError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StoreTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (StoreError, status.HTTP_502_BAD_GATEWAY),
]


def status_for(exc: ShyftoError) -> int:
    """Return the HTTP status reported for a shyfto error."""
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(message: str, error_type: str) -> dict[str, object]:
    return {"error": message, "errorType": error_type}


async def shyfto_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Convert a ShyftoError into an error response."""
    assert isinstance(exc, ShyftoError)
    code = status_for(exc)
    if code >= 500:
        logger.error("Storage operation error (%s): %s", type(exc).__name__, exc)
    else:
        logger.warning("Rejected storage request (%s): %s", type(exc).__name__, exc)

    body = _error_body(str(exc), type(exc).__name__)
    if isinstance(exc, PartialDeletionError):
        body["results"] = [r.to_dict() for r in exc.results]
    return JSONResponse(status_code=code, content=body)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report malformed request bodies in the shared error shape."""
    assert isinstance(exc, RequestValidationError)
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(f"Invalid request: {problems}", "InvalidEnvelopeError"),
    )


async def http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report framework HTTP errors (404 routes, 503 storage) in the shared shape."""
    assert isinstance(exc, StarletteHTTPException)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), "HTTPError"),
        headers=getattr(exc, "headers", None),
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all so clients always receive the shared error shape.

    Starlette runs this handler outside CORSMiddleware, so the allow-origin
    header is set here.
    """
    logger.error("Unexpected storage operation error", exc_info=exc)
    headers = {"Access-Control-Allow-Origin": "*"} if "origin" in request.headers else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(str(exc) or type(exc).__name__, "InternalError"),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to an application."""
    app.add_exception_handler(ShyftoError, shyfto_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
