"""
Domain error taxonomy and the JSON error envelope.

Services raise the exceptions defined here; the handlers registered by
``register_exception_handlers`` turn them into

    {"success": false, "error": {"kind", "message", "status", "trace_id"}}

so routers never translate errors by hand.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ProjectHubError(Exception):
    """Base class for errors with a stable kind and an HTTP status."""

    kind = "ProjectHubError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class DuplicateActiveInvitation(ProjectHubError):
    kind = "DuplicateActiveInvitation"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Invitation already sent to this email"


class UserAlreadyExists(ProjectHubError):
    kind = "UserAlreadyExists"
    status_code = status.HTTP_409_CONFLICT
    default_message = "User with this email already exists"


class NotFoundOrExpired(ProjectHubError):
    """Any failure to resolve a public token. Never says which one."""

    kind = "NotFoundOrExpired"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Invalid or expired invitation"


class NotFound(ProjectHubError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidTransition(ProjectHubError):
    kind = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Invitation is no longer pending"


class Forbidden(ProjectHubError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied. Insufficient permissions."


class Unauthorized(ProjectHubError):
    kind = "Unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class ValidationError(ProjectHubError):
    kind = "ValidationError"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


def _ensure_trace_id(request: Request) -> str:
    val = getattr(request.state, "trace_id", None)
    if val:
        return str(val)
    for header in ("x-request-id", "x-correlation-id"):
        inbound = request.headers.get(header)
        if inbound:
            request.state.trace_id = inbound
            return inbound
    new_id = uuid.uuid4().hex
    request.state.trace_id = new_id
    return new_id


def _payload(
    *,
    kind: str,
    message: str,
    status_code: int,
    trace_id: str,
    details: Any = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": {
            "kind": kind,
            "message": message,
            "status": status_code,
            "trace_id": trace_id,
        },
    }
    if details is not None:
        body["error"]["details"] = details
    return body


def _response(request: Request, *, kind: str, message: str, status_code: int, details: Any = None,
              headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    trace_id = _ensure_trace_id(request)
    out_headers = dict(headers or {})
    out_headers["X-Request-ID"] = trace_id
    return JSONResponse(
        status_code=status_code,
        headers=out_headers,
        content=_payload(
            kind=kind,
            message=message,
            status_code=status_code,
            trace_id=trace_id,
            details=details,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Registers the JSON error envelope for domain, HTTP, validation and unhandled errors."""

    @app.exception_handler(ProjectHubError)
    async def domain_exc_handler(request: Request, exc: ProjectHubError):
        logger.info(
            "%s %s -> %s %s: %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.kind,
            exc.message,
        )
        return _response(
            request,
            kind=exc.kind,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        )

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        status_code = int(exc.status_code)
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        level = logging.ERROR if status_code >= 500 else logging.WARNING
        logger.log(level, "HTTPException %s %s -> %s | detail=%r",
                   request.method, request.url.path, status_code, exc.detail)
        kind = {
            status.HTTP_401_UNAUTHORIZED: Unauthorized.kind,
            status.HTTP_403_FORBIDDEN: Forbidden.kind,
            status.HTTP_404_NOT_FOUND: NotFound.kind,
        }.get(status_code, "HTTPError")
        return _response(
            request,
            kind=kind,
            message=message,
            status_code=status_code,
            headers=dict(exc.headers or {}),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        logger.warning("ValidationError %s %s -> 422 | errors=%s",
                       request.method, request.url.path, errors)
        return _response(
            request,
            kind=ValidationError.kind,
            message=ValidationError.default_message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=errors,
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        # Full traceback to server logs; generic message to client
        logger.exception("Unhandled exception %s %s -> 500", request.method, request.url.path)
        return _response(
            request,
            kind="InternalError",
            message="Internal server error.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
