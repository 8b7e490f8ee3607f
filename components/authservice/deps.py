from typing import Optional

from fastapi import Depends, Header, Request

from .contracts import AuthErrorCodes, CurrentUser, RequestContext
from .errors import make_auth_error
from .service import AuthService

_auth_service: Optional[AuthService] = None


def set_auth_service(svc: Optional[AuthService]) -> None:
    """Install the AuthService used by the auth routes. Called by the app factory and tests."""
    global _auth_service
    _auth_service = svc


def get_auth_service() -> AuthService:
    if _auth_service is None:
        raise RuntimeError("AuthService not configured; call set_auth_service() first")
    return _auth_service


def get_request_context(request: Request) -> RequestContext:
    """
    Build the per-request context handed to the service. Prefers what
    RequestContextMiddleware put on request.state, falls back to headers.
    """
    request_id = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    return RequestContext(
        request_id=request_id,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_bearer_token(authorization: Optional[str] = Header(default=None, alias="Authorization")) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise make_auth_error(AuthErrorCodes.MISSING_TOKEN, "Missing or invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise make_auth_error(AuthErrorCodes.MISSING_TOKEN, "Missing or invalid Authorization header")
    return token


def get_current_user(
    token: str = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    """Bearer guard: verifies the access token and returns {id, email} of an active user."""
    return auth.verify_access(token)
