"""Append-only event log for one monitoring session."""

from __future__ import annotations

from typing import Callable

from core.logging import logger
from proctoring.events import Event, EventKind
from proctoring.scoring import count_events


EventCallback = Callable[[Event], None]


class SessionLog:
    """Ordered, append-only sequence of events with change notifications.

    Insertion order is chronological order. Readers receive immutable tuple
    snapshots; subscribers are called synchronously after each append.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._subscribers: list[EventCallback] = []

    def append(self, event: Event) -> None:
        """Append ``event`` and notify subscribers."""

        self._events.append(event)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("[LOG] Subscriber callback failed")

    def read_all(self) -> tuple[Event, ...]:
        """Return a snapshot of every event in insertion order."""

        return tuple(self._events)

    def count(self, kind: EventKind) -> int:
        return sum(1 for event in self._events if event.kind is kind)

    def counts(self) -> dict[EventKind, int]:
        """Return per-kind counts, including kinds that never occurred."""

        return count_events(self._events)

    def subscribe(self, callback: EventCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def __len__(self) -> int:
        return len(self._events)
