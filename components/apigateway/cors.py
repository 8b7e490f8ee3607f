from __future__ import annotations
from fnmatch import fnmatchcase
from typing import List, Optional

from pydantic import BaseModel, Field
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class CorsSettings(BaseModel):
    enabled: bool = True
    origins: List[str] = Field(default_factory=lambda: ["*"])
    origin_regex: Optional[str] = None
    methods: List[str] = Field(default_factory=lambda: ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"])
    allowed_headers: List[str] = Field(default_factory=lambda: ["*"])
    exposed_headers: List[str] = Field(default_factory=lambda: ["x-request-id"])
    credentials: bool = False
    max_age: int = 3600
    # glob patterns; "*" also crosses "/"
    include_paths: List[str] = Field(default_factory=list)
    exclude_paths: List[str] = Field(default_factory=list)

    def applies_to(self, path: str) -> bool:
        """Exclusions win; an empty include list means every path."""
        if any(fnmatchcase(path, pat) for pat in self.exclude_paths):
            return False
        if self.include_paths:
            return any(fnmatchcase(path, pat) for pat in self.include_paths)
        return True


class PathFilteredCORSMiddleware:
    """
    Routes requests on matching paths through Starlette's CORSMiddleware and
    everything else straight to the app, so unmatched paths get no CORS headers.
    """

    def __init__(self, app: ASGIApp, settings: CorsSettings):
        self.app = app
        self.settings = settings
        self.cors_app = CORSMiddleware(
            app,
            allow_origins=settings.origins,
            allow_origin_regex=settings.origin_regex,
            allow_methods=settings.methods,
            allow_headers=settings.allowed_headers,
            allow_credentials=settings.credentials,
            expose_headers=settings.exposed_headers,
            max_age=settings.max_age,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.settings.applies_to(scope["path"]):
            await self.cors_app(scope, receive, send)
            return
        await self.app(scope, receive, send)
