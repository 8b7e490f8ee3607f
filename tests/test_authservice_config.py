import pytest
from pydantic import ValidationError

from components.authservice import AuthConfig, build_auth_service, parse_duration
from components.authservice.adapters_sqlalchemy import SqlAlchemyRefreshTokenStore
from tests._support import ACCESS_SECRET, REFRESH_SECRET, make_cfg


@pytest.mark.parametrize(
    "raw,seconds",
    [(900, 900), ("900", 900), ("45s", 45), ("15m", 900), ("1h", 3600), ("7d", 604800), ("2w", 1209600), (" 3H ", 10800)],
)
def test_parse_duration(raw, seconds):
    assert parse_duration(raw) == seconds


@pytest.mark.parametrize("raw", ["", "abc", "10y", "1.5h", "-5m", True])
def test_parse_duration_rejects(raw):
    with pytest.raises(ValueError):
        parse_duration(raw)


def test_defaults():
    cfg = make_cfg()
    assert cfg.access_expires_in == 900
    assert cfg.refresh_expires_in == 7 * 24 * 3600
    assert cfg.algorithm == "HS256"
    assert cfg.store_backend == "memory"


def test_secrets_must_differ():
    with pytest.raises(ValidationError):
        AuthConfig(access_secret="same", refresh_secret="same")
    with pytest.raises(ValidationError):
        AuthConfig(access_secret="", refresh_secret=REFRESH_SECRET)


@pytest.mark.parametrize(
    "field,value",
    [("bcrypt_rounds", 3), ("bcrypt_rounds", 32), ("store_backend", "redis"), ("access_expires_in", 0), ("refresh_expires_in", "nope")],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        make_cfg(**{field: value})


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AUTH_ACCESS_SECRET", ACCESS_SECRET)
    monkeypatch.setenv("AUTH_REFRESH_SECRET", REFRESH_SECRET)
    monkeypatch.setenv("AUTH_ACCESS_EXPIRES_IN", "5m")
    monkeypatch.setenv("AUTH_BCRYPT_ROUNDS", "6")
    cfg = AuthConfig()
    assert cfg.access_secret == ACCESS_SECRET
    assert cfg.access_expires_in == 300
    assert cfg.bcrypt_rounds == 6


def test_yaml_file_is_read_and_env_wins(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text(
        "access_secret: yaml-access-secret\n"
        "refresh_secret: yaml-refresh-secret\n"
        "refresh_expires_in: 1d\n"
        "issuer: from-yaml\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AUTH_ISSUER", "from-env")

    cfg = AuthConfig()
    assert cfg.access_secret == "yaml-access-secret"
    assert cfg.refresh_expires_in == 86400
    assert cfg.issuer == "from-env"


def test_build_auth_service_with_sqlalchemy_backend():
    svc = build_auth_service(make_cfg(store_backend="sqlalchemy", database_url="sqlite://"))
    assert isinstance(svc.token_store, SqlAlchemyRefreshTokenStore)

    tokens = svc.register("alice@example.com", "secret123")
    rotated = svc.refresh(tokens.refresh_token)
    assert svc.verify_access(rotated.access_token).email == "alice@example.com"


def test_config_file_env_is_read_at_instantiation(tmp_path, monkeypatch):
    path = tmp_path / "auth.yaml"
    path.write_text("access_secret: file-access\nrefresh_secret: file-refresh\nbcrypt_rounds: 5\n", encoding="utf-8")
    monkeypatch.setenv("AUTH_CONFIG_FILE", str(path))

    cfg = AuthConfig()
    assert cfg.access_secret == "file-access"
    assert cfg.bcrypt_rounds == 5


def test_service_health_reflects_store():
    svc = build_auth_service(make_cfg(store_backend="sqlalchemy", database_url="sqlite://"))
    assert svc.health() is True

    def broken():
        raise RuntimeError("database unavailable")

    svc.user_store.ping = broken
    assert svc.health() is False
