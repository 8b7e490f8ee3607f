from __future__ import annotations
import os
import re
from typing import Any, Literal, Optional, Tuple, Type

from pydantic import field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: Any) -> int:
    """
    Turn a TTL into seconds. Accepts ints and strings like "900", "15m", "7d".
    """
    if isinstance(value, bool):
        raise ValueError("duration must be a number of seconds or '<n>[s|m|h|d|w]'")
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(str(value).lower())
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


class AuthConfig(BaseSettings):
    access_secret: str = "default-access-secret-change-in-production"
    refresh_secret: str = "default-refresh-secret-change-in-production"
    access_expires_in: int = 15 * 60           # 15 minutes
    refresh_expires_in: int = 7 * 24 * 3600    # 7 days
    algorithm: str = "HS256"
    issuer: Optional[str] = "authgate"
    audience: Optional[str] = "authgate-clients"
    bcrypt_rounds: int = 10

    store_backend: Literal["memory", "sqlalchemy"] = "memory"
    database_url: str = "sqlite:///./authgate.db"

    cleanup_enabled: bool = True
    cleanup_interval_seconds: int = 24 * 3600

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # resolved per instantiation; a missing yaml file contributes nothing
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=os.getenv("AUTH_CONFIG_FILE", "config.yaml")),
            file_secret_settings,
        )

    @field_validator("access_expires_in", "refresh_expires_in", mode="before")
    @classmethod
    def _parse_ttl(cls, v: Any) -> int:
        return parse_duration(v)

    @field_validator("access_expires_in", "refresh_expires_in", "cleanup_interval_seconds")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def _bcrypt_rounds_range(cls, v: int) -> int:
        if not 4 <= v <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def _distinct_secrets(self) -> "AuthConfig":
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("access_secret and refresh_secret must be non-empty")
        if self.access_secret == self.refresh_secret:
            raise ValueError("access_secret and refresh_secret must differ")
        return self
