from __future__ import annotations
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .contracts import AuthErrorCodes, ErrorPayload, MetaPayload, UWFResponse

log = logging.getLogger("authservice.errors")


class AuthServiceException(Exception):
    type: str = "INTERNAL"
    status_code: int = 500

    def __init__(self, code: str, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.payload = ErrorPayload(type=self.type, code=code, message=message, details=details)

    @property
    def code(self) -> str:
        return self.payload.code


class ConflictError(AuthServiceException):
    type = "CONFLICT"
    status_code = 409


class UnauthorizedError(AuthServiceException):
    type = "AUTH_ERROR"
    status_code = 401


class VerificationError(AuthServiceException):
    """Malformed, tampered or expired signed token."""
    type = "AUTH_ERROR"
    status_code = 401

    def __init__(self, message: str = "Invalid token", *, code: str = AuthErrorCodes.INVALID_TOKEN):
        super().__init__(code, message)


class DuplicateKeyError(Exception):
    """A store rejected a write because a unique key is already taken."""


def make_auth_error(code: str, message: str, *, details: Optional[dict] = None) -> UnauthorizedError:
    return UnauthorizedError(code, message, details=details)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthServiceException)
    async def handle_auth_error(request: Request, ex: AuthServiceException):
        request_id = getattr(request.state, "request_id", None)
        log.info(
            "auth.error",
            extra={"request_id": request_id, "code": ex.code, "status": ex.status_code, "path": request.url.path},
        )
        body = UWFResponse(ok=False, error=ex.payload, meta=MetaPayload(request_id=request_id))
        headers = {"WWW-Authenticate": "Bearer"} if ex.status_code == 401 else None
        return JSONResponse(status_code=ex.status_code, content=body.model_dump(mode="json"), headers=headers)
