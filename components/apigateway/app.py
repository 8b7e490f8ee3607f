from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response, status

from components.authservice import (
    AuthConfig, AuthService, RefreshTokenCleanupJob, auth_router, build_auth_service,
    register_error_handlers, set_auth_service,
)
from .cors import CorsSettings, PathFilteredCORSMiddleware
from .observability import RequestContextMiddleware, configure_logging
from .settings import APP_NAME, APP_VERSION, CORS, LOG_LEVEL


def create_app(
    cfg: Optional[AuthConfig] = None,
    *,
    service: Optional[AuthService] = None,
    cors: Optional[CorsSettings] = None,
) -> FastAPI:
    configure_logging(LOG_LEVEL)
    cors = cors or CORS
    cfg = cfg or (service.cfg if service else AuthConfig())
    service = service or build_auth_service(cfg)
    set_auth_service(service)
    cleanup = RefreshTokenCleanupJob(
        service, interval_seconds=cfg.cleanup_interval_seconds, enabled=cfg.cleanup_enabled,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cleanup.start()
        try:
            yield
        finally:
            await cleanup.stop()

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.state.auth_service = service
    app.state.cleanup_job = cleanup

    if cors.enabled:
        app.add_middleware(PathFilteredCORSMiddleware, settings=cors)
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    # Routers
    app.include_router(auth_router)

    @app.get("/healthz")
    def healthz(response: Response):
        if not service.health():
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {"ok": False, "status": "unavailable", "version": APP_VERSION}
        return {"ok": True, "status": "ok", "version": APP_VERSION}

    return app


app = create_app()
