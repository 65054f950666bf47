from __future__ import annotations

from datetime import datetime, timezone

from proctoring.events import Event, EventKind, iso_timestamp
from proctoring.session_log import SessionLog


def _event(kind: EventKind, second: int = 0, detail: str | None = None) -> Event:
    moment = datetime(2025, 10, 26, 14, 45, second, 200000, tzinfo=timezone.utc)
    return Event(timestamp=iso_timestamp(moment), kind=kind, detail=detail)


def test_append_preserves_insertion_order() -> None:
    log = SessionLog()
    first = _event(EventKind.NO_FACE, 1)
    second = _event(EventKind.SUSPICIOUS_ITEM, 2, "book")

    log.append(first)
    log.append(second)

    assert log.read_all() == (first, second)
    assert len(log) == 2


def test_snapshot_is_not_affected_by_later_appends() -> None:
    log = SessionLog()
    log.append(_event(EventKind.EYES_CLOSED, 1))

    snapshot = log.read_all()
    log.append(_event(EventKind.EYES_CLOSED, 2))

    assert len(snapshot) == 1
    assert len(log.read_all()) == 2


def test_counts_include_every_kind() -> None:
    log = SessionLog()
    log.append(_event(EventKind.LOOKING_AWAY, 1))
    log.append(_event(EventKind.LOOKING_AWAY, 6))

    counts = log.counts()
    assert counts[EventKind.LOOKING_AWAY] == 2
    assert counts[EventKind.NO_FACE] == 0
    assert set(counts) == set(EventKind)
    assert log.count(EventKind.LOOKING_AWAY) == 2


def test_subscribers_receive_appends_until_unsubscribed() -> None:
    log = SessionLog()
    received: list[Event] = []
    log.subscribe(received.append)
    log.subscribe(received.append)

    log.append(_event(EventKind.NO_FACE, 1))
    log.unsubscribe(received.append)
    log.append(_event(EventKind.NO_FACE, 2))

    assert [event.timestamp for event in received] == ["2025-10-26T14:45:01.200Z"]


def test_failing_subscriber_does_not_block_others() -> None:
    log = SessionLog()
    received: list[Event] = []

    def broken(_event: Event) -> None:
        raise RuntimeError("display went away")

    log.subscribe(broken)
    log.subscribe(received.append)
    log.append(_event(EventKind.MULTIPLE_FACES, 3, "2"))

    assert len(received) == 1
    assert len(log) == 1


def test_event_text_and_timestamp_format() -> None:
    naive = datetime(2025, 10, 26, 14, 45, 31, 200000)

    assert iso_timestamp(naive) == "2025-10-26T14:45:31.200Z"
    assert _event(EventKind.SUSPICIOUS_ITEM, detail="cell phone").text == "Suspicious Item Detected: cell phone"
    assert _event(EventKind.NO_FACE).text == "No face detected for more than 5 seconds"
    assert EventKind("LookingAway") is EventKind.LOOKING_AWAY
