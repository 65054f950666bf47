"""Monitoring session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from proctoring.session_log import SessionLog


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """One continuous monitoring run, from stream start to teardown."""

    candidate_name: str = ""
    started_at: datetime = field(default_factory=utc_now)
    log: SessionLog = field(default_factory=SessionLog)

    def set_candidate_name(self, name: str) -> None:
        self.candidate_name = name

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        """Return seconds elapsed since the stream started."""

        now = now or utc_now()
        return max(0.0, (now - self.started_at).total_seconds())
