"""
Dispatch service: singleton that owns the shared httpx client and wires the
channels, the coordinator and the history recorder together.
"""

import httpx
import structlog

from app.config import settings
from app.db.session import async_session
from app.history.recorder import HistoryRecorder
from app.output.bot import BotChannel
from app.output.router import DispatchCoordinator
from app.output.webhook import WebhookChannel

logger = structlog.get_logger()


class DispatchService:
    def __init__(self):
        self._http: httpx.AsyncClient | None = None
        self.coordinator: DispatchCoordinator | None = None
        self.recorder: HistoryRecorder | None = None

    async def initialize(self, transport: httpx.AsyncBaseTransport | None = None):
        """Create the httpx client and build the coordinator."""
        self._http = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS, transport=transport)
        self.recorder = HistoryRecorder(async_session)
        self.coordinator = DispatchCoordinator(
            [WebhookChannel(self._http), BotChannel(self._http)],
            recorder=self.recorder,
        )
        logger.info("dispatch_service.initialized")

    async def shutdown(self):
        """Flush pending history writes and close the httpx client."""
        if self.recorder:
            await self.recorder.drain()
        if self._http:
            await self._http.aclose()
            self._http = None
        logger.info("dispatch_service.shutdown")


# Singleton instance
dispatch_service = DispatchService()
