from __future__ import annotations
import os
from typing import List

from .cors import CorsSettings

APP_NAME = "authgate"
APP_VERSION = os.getenv("APP_VERSION", "0.1.0")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _csv(name: str, default: str = "") -> List[str]:
    return [v.strip() for v in os.getenv(name, default).split(",") if v.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# CORS; list values are comma-separated, "*" allows any origin
CORS = CorsSettings(
    enabled=_flag("CORS_ENABLED", "true"),
    origins=_csv("CORS_ORIGINS", "*"),
    origin_regex=os.getenv("CORS_ORIGIN_REGEX") or None,
    methods=_csv("CORS_METHODS", "GET,HEAD,PUT,PATCH,POST,DELETE"),
    allowed_headers=_csv("CORS_HEADERS", "*"),
    exposed_headers=_csv("CORS_EXPOSED_HEADERS", "x-request-id"),
    credentials=_flag("CORS_CREDENTIALS", "false"),
    max_age=int(os.getenv("CORS_MAX_AGE", "3600")),
    include_paths=_csv("CORS_INCLUDE_PATHS"),
    exclude_paths=_csv("CORS_EXCLUDE_PATHS"),
)
