from .service import AuthService, build_auth_service
from .clock import SystemClock
from .crypto import JWTTokenSigner, BcryptPasswordHasher
from .adapters_inmemory import InMemoryUserStore, InMemoryRefreshTokenStore
from .adapters_sqlalchemy import SqlAlchemyUserStore, SqlAlchemyRefreshTokenStore, create_session_factory
from .cleanup import RefreshTokenCleanupJob
from .config import AuthConfig, parse_duration
from .deps import set_auth_service, get_auth_service, get_current_user
from .errors import (
    AuthServiceException, ConflictError, UnauthorizedError, VerificationError, register_error_handlers,
)
from .routes import router as auth_router

__all__ = [
    "AuthService",
    "build_auth_service",
    "SystemClock",
    "JWTTokenSigner",
    "BcryptPasswordHasher",
    "InMemoryUserStore",
    "InMemoryRefreshTokenStore",
    "SqlAlchemyUserStore",
    "SqlAlchemyRefreshTokenStore",
    "create_session_factory",
    "RefreshTokenCleanupJob",
    "AuthConfig",
    "parse_duration",
    "set_auth_service",
    "get_auth_service",
    "get_current_user",
    "AuthServiceException",
    "ConflictError",
    "UnauthorizedError",
    "VerificationError",
    "register_error_handlers",
    "auth_router",
]
