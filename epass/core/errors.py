"""Error taxonomy and the JSON response envelope.

Every failure a route can report is an ``EpassError`` subclass carrying the
HTTP status it maps to. Routes raise them; the handlers registered in
``epass.main`` render them as ``{"success": false, "message": ...}``.
"""
import errno
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, OperationalError

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

CONNECTION_ERRNOS = {
    errno.ETIMEDOUT,
    errno.EHOSTUNREACH,
    errno.ECONNRESET,
    errno.ECONNREFUSED,
}
CONNECTION_CODE_NAMES = {"ETIMEDOUT", "EHOSTUNREACH", "ECONNRESET", "ECONNREFUSED"}
# Postgres SQLSTATE: class 08 is connection exception, 57P0x is operator intervention
CONNECTION_SQLSTATE_PREFIXES = ("08", "57P0")
CONNECTION_MESSAGE_MARKERS = (
    "could not connect",
    "connection refused",
    "server closed the connection",
    "connection already closed",
    "timeout expired",
    "could not translate host name",
    "unable to open database file",
)


class EpassError(Exception):
    """Base class for errors reported to API clients."""

    status_code = 500
    default_message = "An internal server error occurred."

    def __init__(self, message: str | None = None, data: dict | None = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(EpassError):
    status_code = 400
    default_message = "Invalid request."


class Unauthorized(EpassError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(EpassError):
    status_code = 404
    default_message = "Not found."


class Conflict(EpassError):
    status_code = 409
    default_message = "This record already exists."


class PayloadTooLarge(EpassError):
    status_code = 413
    default_message = "Payload is too large."


class TooManyRequests(EpassError):
    status_code = 429
    default_message = "You have made too many requests. Please try again in a minute."


class UpstreamUnavailable(EpassError):
    status_code = 503
    default_message = "Service temporarily unavailable. Please try again."


class InternalError(EpassError):
    status_code = 500


def envelope(success: bool, message: str | None = None, data=None) -> dict:
    """Build the ``{success, message?, data?}`` body shared by all API routes."""
    body = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None) or exc
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_connection_error(exc: BaseException) -> bool:
    """Return True if ``exc`` means the datastore could not be reached.

    Server-side failures that carry a SQLSTATE outside the connection classes
    (statement timeouts, missing tables, syntax errors) are not connection
    errors, even when the driver reports them as ``OperationalError``.
    """
    if isinstance(exc, DisconnectionError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True

    sqlstate = _sqlstate(exc)
    if sqlstate:
        return sqlstate.startswith(CONNECTION_SQLSTATE_PREFIXES)

    candidates = [exc]
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        candidates.append(exc.orig)
    for candidate in candidates:
        if isinstance(candidate, (ConnectionError, TimeoutError)):
            return True
        if isinstance(candidate, OSError) and candidate.errno in CONNECTION_ERRNOS:
            return True
        if getattr(candidate, "code", None) in CONNECTION_CODE_NAMES:
            return True

    # psycopg2 raises connect failures without a SQLSTATE
    if isinstance(exc, (OperationalError, InterfaceError)):
        message = str(getattr(exc, "orig", None) or exc).lower()
        return any(marker in message for marker in CONNECTION_MESSAGE_MARKERS)
    return False


def raise_for_database_error(exc: Exception, action: str) -> None:
    """Re-raise a datastore failure as ``UpstreamUnavailable`` or ``InternalError``."""
    if isinstance(exc, EpassError):
        raise exc
    if is_connection_error(exc):
        logger.error(f"Database unreachable during {action}: {exc}")
        raise UpstreamUnavailable("Database unreachable. Please try again later.") from exc
    logger.error(f"Unexpected database error during {action}: {exc}")
    raise InternalError() from exc


async def epass_error_handler(request: Request, exc: EpassError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    body = envelope(False, exc.message)
    if exc.data:
        body.update(exc.data)
    return JSONResponse(body, status_code=exc.status_code, headers=NO_STORE_HEADERS)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request format."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(
        envelope(False, message), status_code=400, headers=NO_STORE_HEADERS
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    status_code = 503 if is_connection_error(exc) else 500
    message = (
        UpstreamUnavailable.default_message
        if status_code == 503
        else InternalError.default_message
    )
    return JSONResponse(
        envelope(False, message), status_code=status_code, headers=NO_STORE_HEADERS
    )


def ok(message: str | None = None, data=None) -> JSONResponse:
    """Successful API response in the shared envelope."""
    return JSONResponse(envelope(True, message, data), headers=NO_STORE_HEADERS)
