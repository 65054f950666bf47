"""Integrity score derived from the session log."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Mapping

from proctoring.events import Event, EventKind
from proctoring.settings import DEFAULT_SCORE_WEIGHTS


BASELINE_SCORE = 100


def count_events(events: Iterable[Event]) -> dict[EventKind, int]:
    """Return per-kind counts with every kind present."""

    tally = Counter(event.kind for event in events)
    return {kind: tally.get(kind, 0) for kind in EventKind}


def compute_score(
    events: Iterable[Event],
    weights: Mapping[EventKind, int] | None = None,
) -> int:
    """Deduct weighted penalties per event kind from 100, floored at 0."""

    weights = weights if weights is not None else DEFAULT_SCORE_WEIGHTS
    deductions = sum(
        count * weights.get(kind, 0) for kind, count in count_events(events).items()
    )
    return max(0, BASELINE_SCORE - deductions)
