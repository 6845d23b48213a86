"""
History recorder: the sink the dispatch coordinator reports finished sends to.

record() never blocks and never raises into the dispatch path; the write runs
as a background task and failures are only logged.
"""

import asyncio

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.history_entry import HistoryEntry
from app.output.base import Destination

logger = structlog.get_logger()


class HistoryRecorder:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_entries: int | None = None,
    ):
        self._session_factory = session_factory
        self._max_entries = max_entries or settings.HISTORY_MAX_ENTRIES
        self._pending: set[asyncio.Task] = set()

    def record(self, text: str, destinations: list[Destination], status: str) -> None:
        """Queue a history write for a send that reached at least one destination."""
        task = asyncio.create_task(self._write(text, [d.value for d in destinations], status))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self):
        """Wait for queued writes. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def recent(self, limit: int | None = None) -> list[HistoryEntry]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(HistoryEntry)
                .order_by(HistoryEntry.created_at.desc())
                .limit(limit or self._max_entries)
            )
            return list(result.scalars().all())

    async def clear(self) -> None:
        async with self._session_factory() as db:
            await db.execute(delete(HistoryEntry))
            await db.commit()
        logger.info("history.cleared")

    async def _write(self, text: str, destinations: list[str], status: str):
        try:
            async with self._session_factory() as db:
                db.add(HistoryEntry(text=text, destinations=destinations, status=status))
                await db.flush()

                # Keep only the newest max_entries rows
                keep = (
                    select(HistoryEntry.id)
                    .order_by(HistoryEntry.created_at.desc())
                    .limit(self._max_entries)
                )
                await db.execute(
                    delete(HistoryEntry).where(HistoryEntry.id.not_in(keep))
                )
                await db.commit()
            logger.info("history.recorded", destinations=destinations, status=status)
        except Exception:
            logger.exception("history.record_failed", status=status)
