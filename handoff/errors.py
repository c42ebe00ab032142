"""
Error envelope shared by services and the HTTP layer.

Every failure that crosses the API boundary is one of these, rendered as
``{"error": {"kind": ..., "message": ..., "code": ...}}``.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class HandoffError(Exception):
    kind = "error"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "code": self.code}


class ValidationError(HandoffError):
    kind = "validation"
    status_code = 400


class AuthError(HandoffError):
    kind = "unauthorized"
    status_code = 401


class ForbiddenError(HandoffError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(HandoffError):
    kind = "not_found"
    status_code = 404


class ConflictError(HandoffError):
    kind = "conflict"
    status_code = 409


class PayloadTooLargeError(HandoffError):
    kind = "payload_too_large"
    status_code = 413


class ProviderError(HandoffError):
    """A store, storage or auth provider call failed"""
    kind = "provider"
    status_code = 500


def error_response(error: HandoffError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(error, AuthError) else None
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.to_dict()},
        headers=headers,
    )


async def _handle_handoff_error(request: Request, exc: HandoffError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind} {exc.code}: {exc.message}")
    return error_response(exc)


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    message = "Invalid request: " + ", ".join(f for f in fields if f) if fields else "Invalid request"
    return error_response(ValidationError(message))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HandoffError, _handle_handoff_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
