from __future__ import annotations
import asyncio
import logging
import time
from typing import Optional

from starlette.concurrency import run_in_threadpool

from .service import AuthService

logger = logging.getLogger("authservice.cleanup")


class RefreshTokenCleanupJob:
    """
    Periodically deletes refresh token rows whose expiry has passed.
    The delete is a row-scoped predicate, so it runs alongside normal traffic.
    """

    def __init__(self, service: AuthService, *, interval_seconds: float, enabled: bool = True):
        self.service = service
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        start = time.perf_counter()
        logger.info("cleanup.start")
        deleted = self.service.cleanup_expired()
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info("cleanup.end", extra={"deleted": deleted, "duration_ms": duration_ms})
        return deleted

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op when disabled or already started."""
        if not self.enabled:
            logger.info("cleanup.disabled")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._run_forever(), name="refresh-token-cleanup")
        logger.info("cleanup.scheduled", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await run_in_threadpool(self.run_once)
            except Exception:
                # keep the schedule alive; next tick retries
                logger.exception("cleanup.failed")
