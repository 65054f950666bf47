"""Event schema for the proctoring session log."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class EventKind(str, Enum):
    """Kinds of behavior events emitted by the rule engine."""

    NO_FACE = "NoFaceDetected"
    MULTIPLE_FACES = "MultipleFacesDetected"
    SUSPICIOUS_ITEM = "SuspiciousItemDetected"
    LOOKING_AWAY = "LookingAway"
    EYES_CLOSED = "EyesClosed"


_EVENT_TEXT = {
    EventKind.NO_FACE: "No face detected for more than 5 seconds",
    EventKind.MULTIPLE_FACES: "Multiple faces detected ({detail})",
    EventKind.SUSPICIOUS_ITEM: "Suspicious Item Detected: {detail}",
    EventKind.LOOKING_AWAY: "User looking away",
    EventKind.EYES_CLOSED: "Eyes closed detected",
}


def iso_timestamp(moment: datetime) -> str:
    """Format ``moment`` as ISO-8601 UTC with millisecond precision.

    Example: '2025-10-26T14:45:31.200Z'
    """

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Event:
    """Immutable log entry."""

    timestamp: str
    kind: EventKind
    detail: str | None = None

    @property
    def text(self) -> str:
        """Human-readable event description used by the log and the report."""

        return _EVENT_TEXT[self.kind].format(detail=self.detail or "")
