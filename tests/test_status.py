"""Tests for the per-destination status state machine."""

from __future__ import annotations

import pytest

from app.output.base import DeliveryOutcome, Destination
from app.output.errors import InvalidTransitionError
from app.output.status import StatusTracker


class TestInitialState:
    def test_enabled_pending_others_skipped(self):
        tracker = StatusTracker([Destination.BOT])
        assert tracker[Destination.BOT] == DeliveryOutcome.PENDING
        assert tracker[Destination.WEBHOOK] == DeliveryOutcome.SKIPPED

    def test_snapshot_covers_every_destination(self):
        snap = StatusTracker([]).snapshot()
        assert set(snap) == set(Destination)
        assert all(o == DeliveryOutcome.SKIPPED for o in snap.values())


class TestTransitions:
    def test_pending_to_success(self):
        tracker = StatusTracker([Destination.WEBHOOK])
        tracker.succeed(Destination.WEBHOOK)
        assert tracker[Destination.WEBHOOK] == DeliveryOutcome.SUCCESS

    def test_error_retry_cycle(self):
        tracker = StatusTracker([Destination.WEBHOOK])
        tracker.fail(Destination.WEBHOOK)
        tracker.restart(Destination.WEBHOOK)
        assert tracker[Destination.WEBHOOK] == DeliveryOutcome.PENDING
        tracker.succeed(Destination.WEBHOOK)
        assert tracker[Destination.WEBHOOK] == DeliveryOutcome.SUCCESS

    def test_success_is_terminal(self):
        tracker = StatusTracker([Destination.WEBHOOK])
        tracker.succeed(Destination.WEBHOOK)
        with pytest.raises(InvalidTransitionError):
            tracker.fail(Destination.WEBHOOK)
        with pytest.raises(InvalidTransitionError):
            tracker.restart(Destination.WEBHOOK)

    def test_skipped_never_changes(self):
        tracker = StatusTracker([])
        for move in (tracker.succeed, tracker.fail, tracker.restart):
            with pytest.raises(InvalidTransitionError):
                move(Destination.BOT)
        assert tracker[Destination.BOT] == DeliveryOutcome.SKIPPED

    def test_pending_cannot_restart(self):
        tracker = StatusTracker([Destination.BOT])
        with pytest.raises(InvalidTransitionError):
            tracker.restart(Destination.BOT)


class TestObservers:
    def test_observer_sees_each_transition(self):
        seen = []
        tracker = StatusTracker([Destination.BOT])
        tracker.subscribe(lambda d, old, new: seen.append((d, old, new)))

        tracker.fail(Destination.BOT)
        tracker.restart(Destination.BOT)

        assert seen == [
            (Destination.BOT, DeliveryOutcome.PENDING, DeliveryOutcome.ERROR),
            (Destination.BOT, DeliveryOutcome.ERROR, DeliveryOutcome.PENDING),
        ]

    def test_failing_observer_does_not_block_transition(self):
        def broken(*_):
            raise RuntimeError("observer down")

        tracker = StatusTracker([Destination.BOT])
        tracker.subscribe(broken)
        tracker.succeed(Destination.BOT)
        assert tracker[Destination.BOT] == DeliveryOutcome.SUCCESS
