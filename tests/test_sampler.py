"""Tests for the sampling loop and its in-flight guard."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import threading
import time
from typing import Any

import pytest

from proctoring.engine import RuleEngine
from proctoring.errors import ModelNotReady, VideoNotReady
from proctoring.events import EventKind
from proctoring.sampler import FrameDetector, Sampler, TickOutcome
from proctoring.session_log import SessionLog
from proctoring.settings import ProctorSettings
from vision.detections import Detection, VideoFrame
from vision.detector import ObjectDetector


class _FakeSource:
    def __init__(self, ready: bool = True, fail_read: bool = False) -> None:
        self.ready = ready
        self.fail_read = fail_read
        self.reads = 0

    def is_ready(self) -> bool:
        return self.ready

    def read(self) -> VideoFrame:
        if self.fail_read:
            raise VideoNotReady("no frame yet")
        self.reads += 1
        return VideoFrame(image=None, width=640, height=480)


class _RecordedSource:
    def __init__(self, positions: list[int]) -> None:
        self.positions = list(positions)
        self.finished = False

    def is_ready(self) -> bool:
        return not self.finished

    def read(self) -> VideoFrame:
        if not self.positions:
            self.finished = True
            raise VideoNotReady("end of recording")
        return VideoFrame(image=None, width=640, height=480, position_ms=self.positions.pop(0))


class _FakeDetector:
    def __init__(
        self,
        detections: list[Detection] | None = None,
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
    ) -> None:
        self.detections = detections or []
        self.gate = gate
        self.error = error
        self.calls = 0

    async def detect(self, frame: VideoFrame) -> list[Detection]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.detections)


class _Clock:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


def _wall_clock() -> datetime:
    return datetime(2025, 10, 26, 14, 45, 0, tzinfo=timezone.utc)


def _two_people() -> list[Detection]:
    return [
        Detection(label="person", bbox=(100.0, 50.0, 100.0, 300.0), confidence=0.9),
        Detection(label="person", bbox=(400.0, 50.0, 100.0, 300.0), confidence=0.9),
    ]


def _sampler(
    source: Any,
    detector: FrameDetector,
    settings: ProctorSettings | None = None,
) -> tuple[Sampler, SessionLog, _Clock]:
    log = SessionLog()
    clock = _Clock()
    engine = RuleEngine(log, settings)
    sampler = Sampler(source, detector, engine, settings, clock=clock, wall_clock=_wall_clock)
    return sampler, log, clock


def test_tick_runs_detection_and_appends_events() -> None:
    sampler, log, clock = _sampler(_FakeSource(), _FakeDetector(_two_people()))
    clock.now = 1000

    outcome = asyncio.run(sampler.tick())

    assert outcome is TickOutcome.RAN
    assert [event.kind for event in log.read_all()] == [EventKind.MULTIPLE_FACES]
    assert log.read_all()[0].timestamp == "2025-10-26T14:45:00.000Z"
    assert sampler.in_flight is False


def test_tick_skipped_while_detection_in_flight() -> None:
    async def scenario() -> tuple[TickOutcome, TickOutcome, bool, int]:
        gate = asyncio.Event()
        detector = _FakeDetector(_two_people(), gate=gate)
        sampler, _, _ = _sampler(_FakeSource(), detector)

        first = asyncio.create_task(sampler.tick())
        await asyncio.sleep(0)
        busy = sampler.in_flight
        second = await sampler.tick()
        gate.set()
        return await first, second, busy, detector.calls

    first, second, busy, calls = asyncio.run(scenario())

    assert busy is True
    assert first is TickOutcome.RAN
    assert second is TickOutcome.SKIPPED_IN_FLIGHT
    assert calls == 1


def test_tick_skipped_when_video_not_ready() -> None:
    detector = _FakeDetector()
    sampler, _, _ = _sampler(_FakeSource(ready=False), detector)

    assert asyncio.run(sampler.tick()) is TickOutcome.SKIPPED_VIDEO_NOT_READY
    assert detector.calls == 0


def test_tick_skipped_when_frame_read_fails() -> None:
    detector = _FakeDetector()
    sampler, _, _ = _sampler(_FakeSource(fail_read=True), detector)

    assert asyncio.run(sampler.tick()) is TickOutcome.SKIPPED_VIDEO_NOT_READY
    assert detector.calls == 0
    assert sampler.in_flight is False


def test_model_not_ready_skips_then_recovers() -> None:
    detector = _FakeDetector(_two_people(), error=ModelNotReady("loading"))
    sampler, log, _ = _sampler(_FakeSource(), detector)

    assert asyncio.run(sampler.tick()) is TickOutcome.SKIPPED_MODEL_NOT_READY
    assert len(log) == 0

    detector.error = None
    assert asyncio.run(sampler.tick()) is TickOutcome.RAN
    assert len(log) == 1


def test_detection_failure_clears_in_flight() -> None:
    detector = _FakeDetector(error=RuntimeError("inference crashed"))
    sampler, _, _ = _sampler(_FakeSource(), detector)

    assert asyncio.run(sampler.tick()) is TickOutcome.FAILED
    assert sampler.in_flight is False

    detector.error = None
    assert asyncio.run(sampler.tick()) is TickOutcome.RAN
    assert sampler.get_runtime_status()["failed"] == 1


def test_watchdog_abandons_hung_detection() -> None:
    async def scenario() -> tuple[list[TickOutcome], bool, bool]:
        gate = asyncio.Event()
        detector = _FakeDetector(gate=gate)
        sampler, _, _ = _sampler(_FakeSource(), detector, ProctorSettings(detect_timeout_ms=20))
        outcomes = [await sampler.tick(), await sampler.tick()]
        busy_while_hung = sampler.in_flight
        gate.set()
        await sampler.wait_idle()
        busy_after = sampler.in_flight
        outcomes.append(await sampler.tick())
        return outcomes, busy_while_hung, busy_after

    outcomes, busy_while_hung, busy_after = asyncio.run(scenario())

    assert outcomes == [TickOutcome.TIMED_OUT, TickOutcome.SKIPPED_IN_FLIGHT, TickOutcome.RAN]
    assert busy_while_hung is True
    assert busy_after is False


def test_result_discarded_after_stop() -> None:
    async def scenario() -> tuple[TickOutcome, int]:
        gate = asyncio.Event()
        sampler, log, _ = _sampler(_FakeSource(), _FakeDetector(_two_people(), gate=gate))
        sampler.start()
        pending = asyncio.create_task(sampler.tick())
        await asyncio.sleep(0)
        await sampler.stop()
        gate.set()
        return await pending, len(log)

    outcome, logged = asyncio.run(scenario())

    assert outcome is TickOutcome.DISCARDED
    assert logged == 0


def test_loop_ticks_on_interval_until_stopped() -> None:
    async def scenario() -> dict[str, int | str]:
        detector = _FakeDetector([Detection(label="person", bbox=(270.0, 50.0, 100.0, 300.0))])
        sampler, _, _ = _sampler(_FakeSource(), detector, ProctorSettings(sample_interval_ms=10))
        sampler.start()
        sampler.start()
        await asyncio.sleep(0.2)
        await sampler.stop()
        await sampler.wait_idle()
        return sampler.get_runtime_status()

    status = asyncio.run(scenario())

    assert status["running"] == 0
    assert status["ran"] >= 2
    assert status["failed"] == 0


def test_loop_never_overlaps_slow_detection() -> None:
    async def scenario() -> tuple[dict[str, int | str], int]:
        gate = asyncio.Event()
        detector = _FakeDetector(gate=gate)
        sampler, _, _ = _sampler(_FakeSource(), detector, ProctorSettings(sample_interval_ms=10))
        sampler.start()
        await asyncio.sleep(0.15)
        calls = detector.calls
        await sampler.stop()
        gate.set()
        await sampler.wait_idle()
        return sampler.get_runtime_status(), calls

    status, calls = asyncio.run(scenario())

    assert calls == 1
    assert status["skipped_in_flight"] >= 1
    assert status["discarded"] == 1


def test_abandoned_detection_blocks_new_cycles_until_it_finishes(monkeypatch: pytest.MonkeyPatch) -> None:
    lock = threading.Lock()
    active = 0
    peak = 0
    delays = [0.3]

    def slow_predict(_model: Any, _frame: VideoFrame) -> list[dict[str, Any]]:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(delays.pop(0) if delays else 0.0)
        with lock:
            active -= 1
        return [
            {"label": "person", "confidence": 0.9, "bbox": [100.0, 50.0, 100.0, 300.0]},
            {"label": "person", "confidence": 0.9, "bbox": [400.0, 50.0, 100.0, 300.0]},
        ]

    detector = ObjectDetector()
    monkeypatch.setattr(detector, "_create_model", lambda _weights: object())
    monkeypatch.setattr(detector, "_predict", slow_predict)
    detector.load()

    async def scenario() -> tuple[list[TickOutcome], bool, int]:
        sampler, log, _ = _sampler(_FakeSource(), detector, ProctorSettings(detect_timeout_ms=50))
        outcomes = [await sampler.tick() for _ in range(3)]
        await sampler.wait_idle()
        busy = sampler.in_flight
        outcomes.append(await sampler.tick())
        return outcomes, busy, len(log)

    outcomes, busy, logged = asyncio.run(scenario())

    assert outcomes == [
        TickOutcome.TIMED_OUT,
        TickOutcome.SKIPPED_IN_FLIGHT,
        TickOutcome.SKIPPED_IN_FLIGHT,
        TickOutcome.RAN,
    ]
    assert peak == 1
    assert busy is False
    assert logged == 1


def test_recorded_frames_drive_rules_on_media_time() -> None:
    source = _RecordedSource([0, 1000, 2000, 3000, 4000, 5000])
    sampler, log, clock = _sampler(source, _FakeDetector())
    clock.now = 0

    async def scenario() -> list[TickOutcome]:
        return [await sampler.tick() for _ in range(7)]

    outcomes = asyncio.run(scenario())

    assert outcomes[:6] == [TickOutcome.RAN] * 6
    assert outcomes[6] is TickOutcome.SKIPPED_VIDEO_NOT_READY
    events = log.read_all()
    assert [event.kind for event in events] == [EventKind.NO_FACE]
    assert events[0].timestamp == "2025-10-26T14:45:05.000Z"
    assert sampler.media_position_ms == 5000
