from datetime import datetime, timedelta, timezone

from components.authservice import (
    AuthConfig, AuthService, BcryptPasswordHasher, InMemoryRefreshTokenStore, InMemoryUserStore, JWTTokenSigner,
)

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012"


class FakeClock:
    def __init__(self, start=None):
        self._now = start or datetime.now(timezone.utc)

    def now(self):
        return self._now

    def advance(self, **delta):
        self._now += timedelta(**delta)


def make_cfg(**overrides) -> AuthConfig:
    values = dict(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        bcrypt_rounds=4,
        cleanup_enabled=False,
    )
    values.update(overrides)
    return AuthConfig(**values)


def make_svc(clock=None, **cfg_overrides) -> AuthService:
    cfg = make_cfg(**cfg_overrides)
    clock = clock or FakeClock()
    return AuthService(
        user_store=InMemoryUserStore(clock),
        token_store=InMemoryRefreshTokenStore(clock),
        signer=JWTTokenSigner(algorithm=cfg.algorithm, issuer=cfg.issuer, audience=cfg.audience),
        hasher=BcryptPasswordHasher(rounds=cfg.bcrypt_rounds),
        cfg=cfg,
        clock=clock,
    )
