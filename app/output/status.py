"""
Per-destination delivery state machine.

    SKIPPED                      (terminal)
    PENDING -> SUCCESS | ERROR
    ERROR   -> PENDING           (retry)

The tracker never changes state on its own; only send/retry drive it.
"""

from collections.abc import Callable, Iterable

import structlog

from app.output.base import DeliveryOutcome, Destination
from app.output.errors import InvalidTransitionError

logger = structlog.get_logger()

Observer = Callable[[Destination, DeliveryOutcome, DeliveryOutcome], None]

_ALLOWED = {
    DeliveryOutcome.PENDING: {DeliveryOutcome.SUCCESS, DeliveryOutcome.ERROR},
    DeliveryOutcome.ERROR: {DeliveryOutcome.PENDING},
    DeliveryOutcome.SUCCESS: set(),
    DeliveryOutcome.SKIPPED: set(),
}


class StatusTracker:
    def __init__(self, enabled: Iterable[Destination]):
        enabled = set(enabled)
        self._states: dict[Destination, DeliveryOutcome] = {
            d: DeliveryOutcome.PENDING if d in enabled else DeliveryOutcome.SKIPPED
            for d in Destination
        }
        self._observers: list[Observer] = []

    def __getitem__(self, destination: Destination) -> DeliveryOutcome:
        return self._states[destination]

    def snapshot(self) -> dict[Destination, DeliveryOutcome]:
        return dict(self._states)

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def succeed(self, destination: Destination) -> None:
        self._transition(destination, DeliveryOutcome.SUCCESS)

    def fail(self, destination: Destination) -> None:
        self._transition(destination, DeliveryOutcome.ERROR)

    def restart(self, destination: Destination) -> None:
        """Move an errored destination back to pending for a retry."""
        self._transition(destination, DeliveryOutcome.PENDING)

    def _transition(self, destination: Destination, new: DeliveryOutcome) -> None:
        old = self._states[destination]
        if new not in _ALLOWED[old]:
            raise InvalidTransitionError(
                f"{destination.value}: cannot move from {old.value} to {new.value}"
            )
        self._states[destination] = new
        for observer in self._observers:
            try:
                observer(destination, old, new)
            except Exception:
                logger.exception("status.observer_failed", destination=destination.value)
