"""
Dispatch coordinator: fan one message out to every selected destination.

Each enabled destination runs as its own asyncio task; the coordinator holds
the tasks so a send always runs to completion even if nobody awaits it.
Adapter failures are turned into ERROR outcomes here and never propagate.
"""

import asyncio
import uuid
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Protocol

import httpx
import structlog

from app.config import settings
from app.output.base import (
    Credentials,
    Destination,
    DestinationConfig,
    Message,
    SendResult,
    SendStatus,
)
from app.output.errors import DeliveryError, MissingCredentialError
from app.output.status import StatusTracker

logger = structlog.get_logger()


class Channel(Protocol):
    destination: Destination
    supports_embeds: bool

    async def deliver(self, message: Message, credentials: Credentials) -> None: ...


class OutcomeRecorder(Protocol):
    def record(self, text: str, destinations: list[Destination], status: str) -> None: ...


@dataclass
class DispatchSession:
    """State of one user-triggered send, including any later retries."""

    id: str
    message: Message
    configs: dict[Destination, DestinationConfig]
    tracker: StatusTracker
    dispatched: bool = True
    errors: dict[Destination, str] = field(default_factory=dict)
    tasks: dict[Destination, asyncio.Task] = field(default_factory=dict)
    settled: asyncio.Task | None = None
    recorded_success: bool = False

    def result(self) -> SendResult:
        return SendResult(
            outcomes=self.tracker.snapshot(),
            errors=dict(self.errors),
            dispatched=self.dispatched,
        )

    async def wait(self) -> SendResult:
        """Wait for the latest send/retry round to settle."""
        if self.settled is not None:
            await asyncio.shield(self.settled)
        return self.result()


class DispatchCoordinator:
    def __init__(
        self,
        channels: Iterable[Channel],
        recorder: OutcomeRecorder | None = None,
        max_sessions: int | None = None,
    ):
        self._channels = {c.destination: c for c in channels}
        self._recorder = recorder
        self._max_sessions = max_sessions or settings.SESSION_CACHE_SIZE
        self._sessions: OrderedDict[str, DispatchSession] = OrderedDict()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(
        self, message: Message, destinations: Mapping[Destination, DestinationConfig]
    ) -> SendResult:
        return await self.start(message, destinations).wait()

    def start(
        self, message: Message, destinations: Mapping[Destination, DestinationConfig]
    ) -> DispatchSession:
        """Kick off delivery to every enabled destination and return immediately."""
        # Configs are frozen dataclasses; copying the mapping is a full snapshot.
        configs = dict(destinations)
        enabled = [d for d, cfg in configs.items() if cfg.enabled]
        session_id = uuid.uuid4().hex
        log = logger.bind(session_id=session_id)

        if not message.has_content or not enabled:
            log.info("dispatch.noop", has_content=message.has_content, enabled=len(enabled))
            session = DispatchSession(
                id=session_id,
                message=message,
                configs=configs,
                tracker=StatusTracker([]),
                dispatched=False,
            )
            self._remember(session)
            return session

        session = DispatchSession(
            id=session_id,
            message=message,
            configs=configs,
            tracker=StatusTracker(enabled),
        )
        self._remember(session)
        log.info("dispatch.start", destinations=[d.value for d in enabled])

        for destination in enabled:
            self._launch(session, destination, include_embed=True)

        session.settled = self._spawn(self._settle(session))
        return session

    def get(self, session_id: str) -> DispatchSession | None:
        return self._sessions.get(session_id)

    def start_retry(
        self,
        session_id: str,
        destination: Destination,
        include_embed: bool = True,
        config: DestinationConfig | None = None,
    ) -> DispatchSession:
        """Re-run a single errored destination; siblings are left untouched.

        Raises KeyError for an unknown session and InvalidTransitionError when
        the destination is not currently in the error state.
        """
        session = self._sessions[session_id]
        session.tracker.restart(destination)
        session.errors.pop(destination, None)
        if config is not None:
            session.configs[destination] = config

        logger.info(
            "dispatch.retry",
            session_id=session.id,
            destination=destination.value,
            include_embed=include_embed,
        )
        self._launch(session, destination, include_embed=include_embed)
        session.settled = self._spawn(self._settle_retry(session, destination))
        return session

    async def retry(
        self,
        session_id: str,
        destination: Destination,
        include_embed: bool = True,
        config: DestinationConfig | None = None,
    ) -> SendResult:
        session = self.start_retry(session_id, destination, include_embed, config)
        return await session.wait()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _launch(self, session: DispatchSession, destination: Destination, include_embed: bool):
        config = session.configs.get(destination)
        missing = config.credentials.missing_fields() if config else ["credentials"]
        if missing:
            # Fails before any network call is made.
            error = MissingCredentialError(destination.value, missing)
            logger.warning(
                "dispatch.missing_credentials",
                session_id=session.id,
                destination=destination.value,
                fields=missing,
            )
            session.errors[destination] = str(error)
            session.tracker.fail(destination)
            session.tasks.pop(destination, None)
            return

        message = self._prepare(session.message, destination, include_embed)
        session.tasks[destination] = self._spawn(
            self._deliver(session, destination, message, config)
        )

    def _prepare(self, message: Message, destination: Destination, include_embed: bool) -> Message:
        """Fold the embed into inline text for destinations without native embeds."""
        embed = message.embed if include_embed else None
        channel = self._channels.get(destination)
        if embed is None or not embed.is_populated:
            return replace(message, embed=None)
        if channel is not None and channel.supports_embeds:
            return replace(message, embed=embed)
        text = "\n\n".join(part for part in (message.text, embed.as_text()) if part)
        return replace(message, text=text, embed=None)

    async def _deliver(
        self,
        session: DispatchSession,
        destination: Destination,
        message: Message,
        config: DestinationConfig,
    ):
        log = logger.bind(session_id=session.id, destination=destination.value)
        channel = self._channels.get(destination)
        try:
            if channel is None:
                raise DeliveryError(f"No channel registered for {destination.value}")
            await channel.deliver(message, config.credentials)
        except DeliveryError as e:
            log.warning("dispatch.destination_failed", error=str(e))
            session.errors[destination] = str(e)
            session.tracker.fail(destination)
        except httpx.HTTPError as e:
            log.warning("dispatch.destination_network_error", error=str(e))
            session.errors[destination] = f"Network error: {e}"
            session.tracker.fail(destination)
        except Exception as e:
            log.exception("dispatch.destination_crashed")
            session.errors[destination] = str(e) or type(e).__name__
            session.tracker.fail(destination)
        else:
            log.info("dispatch.destination_succeeded")
            session.tracker.succeed(destination)

    async def _settle(self, session: DispatchSession):
        await asyncio.gather(*session.tasks.values())
        result = session.result()
        logger.info(
            "dispatch.settled",
            session_id=session.id,
            status=result.status.value if result.status else None,
            succeeded=[d.value for d in result.succeeded],
        )
        if result.status == SendStatus.FULL_SUCCESS:
            self._record(session, result, "success")
        elif result.status == SendStatus.PARTIAL_SUCCESS:
            self._record(session, result, "partial")

    async def _settle_retry(self, session: DispatchSession, destination: Destination):
        task = session.tasks.get(destination)
        if task is not None:
            await task
        result = session.result()
        logger.info(
            "dispatch.retry_settled",
            session_id=session.id,
            destination=destination.value,
            outcome=result.outcomes[destination].value,
        )
        if result.status == SendStatus.FULL_SUCCESS:
            self._record(session, result, "success")

    def _record(self, session: DispatchSession, result: SendResult, status: str):
        if self._recorder is None:
            return
        # Concurrent settle rounds can both observe full success; record it once
        if status == "success":
            if session.recorded_success:
                return
            session.recorded_success = True
        try:
            self._recorder.record(session.message.text, result.succeeded, status)
        except Exception:
            logger.exception("dispatch.record_failed", session_id=session.id)

    def _remember(self, session: DispatchSession):
        self._sessions[session.id] = session
        while len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
