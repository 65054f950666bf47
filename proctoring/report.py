"""Proctoring report assembly and CSV export."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math
from pathlib import Path
from typing import Mapping

from core.logging import logger
from proctoring.events import Event, EventKind
from proctoring.scoring import compute_score, count_events
from proctoring.session import Session


REPORT_FILENAME = "proctoring_report.csv"
UNKNOWN_CANDIDATE = "Unknown"

SUMMARY_LABELS = (
    (EventKind.NO_FACE, "Focus Lost Events"),
    (EventKind.MULTIPLE_FACES, "Multiple Faces Events"),
    (EventKind.SUSPICIOUS_ITEM, "Suspicious Item Events"),
    (EventKind.EYES_CLOSED, "Eyes Closed Events"),
    (EventKind.LOOKING_AWAY, "Looking Away Events"),
)


@dataclass(frozen=True)
class ProctoringReport:
    """Structured end-of-session report."""

    candidate_name: str
    duration_s: int
    counts: Mapping[EventKind, int]
    score: int
    events: tuple[Event, ...]


def build_report(
    session: Session,
    now: datetime | None = None,
    weights: Mapping[EventKind, int] | None = None,
) -> ProctoringReport:
    """Snapshot ``session`` into a report.

    Args:
        session: Session whose log is reported.
        now: Optional wall-clock reading used for the duration.
        weights: Optional score weights; defaults to the standard weights.

    Returns:
        Immutable report value.
    """

    events = session.log.read_all()
    name = session.candidate_name.strip() or UNKNOWN_CANDIDATE
    duration_s = int(math.floor(session.elapsed_seconds(now) + 0.5))
    return ProctoringReport(
        candidate_name=name,
        duration_s=duration_s,
        counts=count_events(events),
        score=compute_score(events, weights),
        events=events,
    )


def render_csv(report: ProctoringReport) -> str:
    """Render ``report`` as summary rows followed by the event log."""

    summary = [
        ("Candidate Name", report.candidate_name),
        ("Interview Duration", f"{report.duration_s} sec"),
    ]
    summary.extend((label, str(report.counts.get(kind, 0))) for kind, label in SUMMARY_LABELS)
    summary.append(("Final Integrity Score", str(report.score)))

    lines = [",".join(row) for row in summary]
    lines.extend(["", "Event Logs:", "Timestamp,Event"])
    lines.extend(f"{event.timestamp},{event.text}" for event in report.events)
    return "\n".join(lines)


def export_report(report: ProctoringReport, directory: Path) -> Path:
    """Write the CSV report into ``directory`` and return its path."""

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / REPORT_FILENAME
    path.write_text(render_csv(report), encoding="utf-8")
    logger.info(
        "[REPORT] Exported report for %s (score=%s, events=%d) to %s",
        report.candidate_name,
        report.score,
        len(report.events),
        path,
    )
    return path
