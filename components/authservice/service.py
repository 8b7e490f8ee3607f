from __future__ import annotations
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from .adapters_inmemory import InMemoryRefreshTokenStore, InMemoryUserStore
from .adapters_sqlalchemy import SqlAlchemyRefreshTokenStore, SqlAlchemyUserStore, create_session_factory
from .clock import SystemClock
from .config import AuthConfig
from .contracts import (
    AuthErrorCodes, AuthTokens, ClockPort, CurrentUser, PasswordHasherPort,
    RefreshTokenStorePort, RequestContext, TokenSignerPort, UserStorePort,
)
from .crypto import BcryptPasswordHasher, JWTTokenSigner
from .errors import ConflictError, DuplicateKeyError, make_auth_error

logger = logging.getLogger("authservice")


def _extra(ctx: Optional[RequestContext], **fields: Any) -> Dict[str, Any]:
    data = ctx.log_fields() if ctx else {}
    data.update(fields)
    return data


class AuthService:
    """
    Sole writer of authentication state: registration, login, refresh-token
    rotation and revocation. Access tokens are stateless; refresh tokens are
    single-use and must match a live row in the refresh token store.
    """

    def __init__(
        self,
        *,
        user_store: UserStorePort,
        token_store: RefreshTokenStorePort,
        signer: TokenSignerPort,
        hasher: PasswordHasherPort,
        cfg: Optional[AuthConfig] = None,
        clock: Optional[ClockPort] = None,
    ):
        self.user_store = user_store
        self.token_store = token_store
        self.signer = signer
        self.hasher = hasher
        self.cfg = cfg or AuthConfig()
        self.clock = clock or SystemClock()

    # --------- Core operations ----------
    def register(self, email: str, password: str, name: Optional[str] = None, *, ctx: Optional[RequestContext] = None) -> AuthTokens:
        email = _normalize_email(email)
        if self.user_store.find_by_email(email):
            logger.info("auth.register.rejected", extra=_extra(ctx, reason="email_exists"))
            raise ConflictError(AuthErrorCodes.EMAIL_ALREADY_EXISTS, "Email already registered")

        password_hash = self.hasher.hash(password)
        try:
            user = self.user_store.create(email=email, name=name or "", password_hash=password_hash)
        except DuplicateKeyError:
            # lost a race with a concurrent registration
            logger.info("auth.register.rejected", extra=_extra(ctx, reason="email_exists"))
            raise ConflictError(AuthErrorCodes.EMAIL_ALREADY_EXISTS, "Email already registered")

        logger.info("auth.register", extra=_extra(ctx, user_id=user.id))
        return self._issue_tokens(user.id, user.email, ctx)

    def login(self, email: str, password: str, *, ctx: Optional[RequestContext] = None) -> AuthTokens:
        user = self.user_store.find_by_email_with_password_hash(_normalize_email(email))
        if user is None or not self.hasher.verify(password, user.password_hash):
            logger.info("auth.login.rejected", extra=_extra(ctx, reason="invalid_credentials"))
            raise make_auth_error(AuthErrorCodes.INVALID_CREDENTIALS, "Invalid email or password")
        if not user.is_active:
            logger.info("auth.login.rejected", extra=_extra(ctx, reason="account_disabled", user_id=user.id))
            raise make_auth_error(AuthErrorCodes.ACCOUNT_DISABLED, "Account is disabled")

        logger.info("auth.login", extra=_extra(ctx, user_id=user.id))
        return self._issue_tokens(user.id, user.email, ctx)

    def refresh(self, refresh_token: str, *, ctx: Optional[RequestContext] = None) -> AuthTokens:
        stored = self.token_store.find_by_token(refresh_token)
        if stored is None:
            logger.info("auth.refresh.rejected", extra=_extra(ctx, reason="unknown_or_revoked"))
            raise make_auth_error(AuthErrorCodes.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        if stored.is_expired(self.clock.now()):
            # revoke first so a racing caller cannot reuse the stale row
            self.token_store.revoke_by_token(refresh_token)
            logger.info("auth.refresh.rejected", extra=_extra(ctx, reason="expired", user_id=stored.user_id))
            raise make_auth_error(AuthErrorCodes.REFRESH_TOKEN_EXPIRED, "Refresh token expired")

        user = self.user_store.find_by_id(stored.user_id)
        if user is None:
            logger.info("auth.refresh.rejected", extra=_extra(ctx, reason="user_not_found", user_id=stored.user_id))
            raise make_auth_error(AuthErrorCodes.USER_NOT_FOUND, "User not found")

        if not self.token_store.revoke_by_token(refresh_token):
            logger.warning("auth.refresh.rejected", extra=_extra(ctx, reason="rotation_race", user_id=user.id))
            raise make_auth_error(AuthErrorCodes.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        logger.info("auth.refresh", extra=_extra(ctx, user_id=user.id))
        return self._issue_tokens(user.id, user.email, ctx)

    def logout(self, refresh_token: str, *, ctx: Optional[RequestContext] = None) -> None:
        revoked = self.token_store.revoke_by_token(refresh_token)
        logger.info("auth.logout", extra=_extra(ctx, revoked=revoked))

    def logout_all(self, user_id: str, *, ctx: Optional[RequestContext] = None) -> None:
        revoked = self.token_store.revoke_all_by_user_id(user_id)
        logger.info("auth.logout_all", extra=_extra(ctx, user_id=user_id, revoked=revoked))

    def verify_access(self, access_token: str) -> CurrentUser:
        """
        Guard core. Raises VerificationError for a bad signature or expiry and
        UnauthorizedError when the subject is gone or disabled. Does not consult
        the refresh token store.
        """
        claims = self.signer.verify(access_token, self.cfg.access_secret)
        user = self.user_store.find_by_id(str(claims.get("sub")))
        if user is None:
            raise make_auth_error(AuthErrorCodes.USER_NOT_FOUND, "User not found")
        if not user.is_active:
            raise make_auth_error(AuthErrorCodes.ACCOUNT_DISABLED, "Account is disabled")
        return CurrentUser(id=user.id, email=claims.get("email") or user.email)

    def cleanup_expired(self) -> int:
        return self.token_store.delete_expired_before(self.clock.now())

    def health(self) -> bool:
        """Readiness check: True when the user store answers, False otherwise."""
        try:
            return bool(self.user_store.ping())
        except Exception:
            logger.exception("auth.health.failed")
            return False

    # --------- Helpers ----------
    def _issue_tokens(self, user_id: str, email: str, ctx: Optional[RequestContext] = None) -> AuthTokens:
        claims = {"sub": user_id, "email": email}
        access_token = self.signer.sign(claims, self.cfg.access_secret, self.cfg.access_expires_in)
        refresh_token = self.signer.sign(claims, self.cfg.refresh_secret, self.cfg.refresh_expires_in)

        # same TTL as the signed refresh claim
        expires_at = self.clock.now() + timedelta(seconds=self.cfg.refresh_expires_in)
        self.token_store.create(token=refresh_token, user_id=user_id, expires_at=expires_at)
        logger.debug("auth.tokens.issued", extra=_extra(ctx, user_id=user_id))

        return AuthTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=self.cfg.access_expires_in,
        )


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def build_auth_service(cfg: Optional[AuthConfig] = None, *, clock: Optional[ClockPort] = None) -> AuthService:
    """Wire an AuthService from configuration: stores per store_backend, PyJWT signer, bcrypt hasher."""
    cfg = cfg or AuthConfig()
    clock = clock or SystemClock()
    if cfg.store_backend == "sqlalchemy":
        sessions = create_session_factory(cfg.database_url)
        user_store = SqlAlchemyUserStore(sessions, clock=clock)
        token_store = SqlAlchemyRefreshTokenStore(sessions, clock=clock)
    else:
        user_store = InMemoryUserStore(clock=clock)
        token_store = InMemoryRefreshTokenStore(clock=clock)
    logger.info("auth.service.built", extra={"store_backend": cfg.store_backend})
    return AuthService(
        user_store=user_store,
        token_store=token_store,
        signer=JWTTokenSigner(algorithm=cfg.algorithm, issuer=cfg.issuer, audience=cfg.audience),
        hasher=BcryptPasswordHasher(rounds=cfg.bcrypt_rounds),
        cfg=cfg,
        clock=clock,
    )
