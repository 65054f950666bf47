"""Tests for scoring, report assembly, and CSV export."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from proctoring.events import Event, EventKind
from proctoring.report import REPORT_FILENAME, build_report, export_report, render_csv
from proctoring.scoring import compute_score
from proctoring.session import Session


_STARTED = datetime(2025, 10, 26, 14, 45, 0, tzinfo=timezone.utc)


def _events(*kinds: EventKind) -> list[Event]:
    return [
        Event(timestamp=f"2025-10-26T14:45:{index:02d}.000Z", kind=kind)
        for index, kind in enumerate(kinds)
    ]


def _session(name: str = "Ada", *events: Event) -> Session:
    session = Session(candidate_name=name, started_at=_STARTED)
    for event in events:
        session.log.append(event)
    return session


def test_score_applies_weights() -> None:
    events = _events(EventKind.NO_FACE, EventKind.SUSPICIOUS_ITEM)

    assert compute_score(events) == 85
    assert compute_score([]) == 100


def test_score_for_repeated_absence() -> None:
    events = _events(*([EventKind.NO_FACE] * 12))

    assert compute_score(events) == 40


def test_score_never_goes_below_zero() -> None:
    events = _events(*([EventKind.EYES_CLOSED] * 25))

    assert compute_score(events) == 0


def test_score_honours_custom_weights() -> None:
    weights = {EventKind.LOOKING_AWAY: 50}

    assert compute_score(_events(EventKind.LOOKING_AWAY, EventKind.NO_FACE), weights) == 50


def test_build_report_is_idempotent() -> None:
    session = _session("Ada", *_events(EventKind.NO_FACE, EventKind.LOOKING_AWAY))
    now = _STARTED + timedelta(seconds=60)

    first = build_report(session, now=now)
    second = build_report(session, now=now)

    assert first == second
    assert first.score == 90
    assert first.counts[EventKind.NO_FACE] == 1
    assert first.duration_s == 60


def test_build_report_defaults_blank_name_and_rounds_duration() -> None:
    session = _session("   ")

    report = build_report(session, now=_STARTED + timedelta(seconds=12.5))

    assert report.candidate_name == "Unknown"
    assert report.duration_s == 13
    assert report.score == 100
    assert report.events == ()


def test_render_csv_layout() -> None:
    events = [
        Event(timestamp="2025-10-26T14:45:31.200Z", kind=EventKind.SUSPICIOUS_ITEM, detail="cell phone"),
        Event(timestamp="2025-10-26T14:45:40.000Z", kind=EventKind.NO_FACE),
    ]
    report = build_report(_session("Ada Lovelace", *events), now=_STARTED + timedelta(seconds=75))

    assert render_csv(report) == "\n".join(
        [
            "Candidate Name,Ada Lovelace",
            "Interview Duration,75 sec",
            "Focus Lost Events,1",
            "Multiple Faces Events,0",
            "Suspicious Item Events,1",
            "Eyes Closed Events,0",
            "Looking Away Events,0",
            "Final Integrity Score,85",
            "",
            "Event Logs:",
            "Timestamp,Event",
            "2025-10-26T14:45:31.200Z,Suspicious Item Detected: cell phone",
            "2025-10-26T14:45:40.000Z,No face detected for more than 5 seconds",
        ]
    )


def test_render_csv_without_events_ends_with_header() -> None:
    report = build_report(_session(""), now=_STARTED)

    text = render_csv(report)

    assert text.startswith("Candidate Name,Unknown\nInterview Duration,0 sec\n")
    assert text.endswith("Event Logs:\nTimestamp,Event")


def test_export_report_writes_file(tmp_path: Path) -> None:
    report = build_report(_session("Ada", *_events(EventKind.EYES_CLOSED)), now=_STARTED)

    path = export_report(report, tmp_path / "reports")

    assert path == tmp_path / "reports" / REPORT_FILENAME
    assert path.read_text(encoding="utf-8") == render_csv(report)
