"""Monitoring lifecycle: owns the session, rule engine and sampler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable

from core.logging import log_proctor_event, log_warning, logger
from proctoring.engine import RuleEngine
from proctoring.errors import CaptureDenied
from proctoring.report import ProctoringReport, build_report
from proctoring.sampler import FrameDetector, FrameSource, Sampler, monotonic_ms
from proctoring.scoring import compute_score
from proctoring.session import Session, utc_now
from proctoring.session_log import EventCallback
from proctoring.settings import ProctorSettings


class ProctorMonitor:
    """Starts and tears down one monitoring session.

    ``start`` corresponds to the monitoring view mounting and ``stop`` to it
    unmounting. Consumers only get read-only snapshots plus subscriptions.
    """

    def __init__(
        self,
        source: FrameSource,
        detector: FrameDetector,
        settings: ProctorSettings | None = None,
        *,
        candidate_name: str = "",
        clock: Callable[[], int] = monotonic_ms,
        wall_clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or ProctorSettings()
        self._source = source
        self._detector = detector
        self._candidate_name = candidate_name
        self._clock = clock
        self._wall_clock = wall_clock

        self.session: Session | None = None
        self.engine: RuleEngine | None = None
        self.sampler: Sampler | None = None
        self.notice = ""
        self._load_task: asyncio.Task[None] | None = None
        self._subscribers: list[EventCallback] = []

    @property
    def is_running(self) -> bool:
        return self.sampler is not None and self.sampler.is_running

    @property
    def face_detected(self) -> bool:
        return self.engine is not None and self.engine.face_detected

    @property
    def source_finished(self) -> bool:
        """True once a recorded source has run out of frames."""

        return bool(getattr(self._source, "finished", False))

    def set_candidate_name(self, name: str) -> None:
        self._candidate_name = name
        if self.session is not None:
            self.session.set_candidate_name(name)

    def subscribe(self, callback: EventCallback) -> None:
        """Receive every event appended from now on, across restarts."""

        if callback not in self._subscribers:
            self._subscribers.append(callback)
        if self.session is not None:
            self.session.log.subscribe(callback)

    async def start(self) -> bool:
        """Open the stream and begin sampling.

        Returns:
            False if capture was denied; the reason is kept in ``notice``.
        """

        if self.is_running:
            return True

        try:
            self._open_source()
        except CaptureDenied as exc:
            self.notice = f"Camera access unavailable: {exc}"
            log_warning(f"[MONITOR] {self.notice}")
            return False
        self.notice = ""

        session = Session(candidate_name=self._candidate_name, started_at=self._wall_clock())
        session.log.subscribe(log_proctor_event)
        for callback in self._subscribers:
            session.log.subscribe(callback)

        self.session = session
        self.engine = RuleEngine(session.log, self.settings)
        self.sampler = Sampler(
            self._source,
            self._detector,
            self.engine,
            self.settings,
            clock=self._clock,
            wall_clock=self._wall_clock,
        )
        self._start_model_load()
        self.sampler.start()
        logger.info("[MONITOR] Monitoring started for %s", session.candidate_name or "Unknown")
        return True

    async def stop(self) -> None:
        """Stop sampling and release the video source."""

        if self.sampler is not None:
            await self.sampler.stop()
        close = getattr(self._source, "close", None)
        if callable(close):
            close()
        logger.info("[MONITOR] Monitoring stopped")

    def score(self) -> int:
        if self.session is None:
            return compute_score(())
        return compute_score(self.session.log.read_all(), self.settings.score_weights)

    def report(self, now: datetime | None = None) -> ProctoringReport:
        if self.session is None:
            raise RuntimeError("Monitoring has not started")
        if now is None:
            now = self._report_time()
        return build_report(
            self.session,
            now=now,
            weights=self.settings.score_weights,
        )

    def get_runtime_status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "running": int(self.is_running),
            "face_detected": int(self.face_detected),
            "events": len(self.session.log) if self.session is not None else 0,
            "score": self.score(),
        }
        if self.sampler is not None:
            status.update({f"sampler_{key}": value for key, value in self.sampler.get_runtime_status().items()})
        return status

    def _report_time(self) -> datetime:
        # Recordings report media duration instead of wall time.
        position_ms = self.sampler.media_position_ms if self.sampler is not None else None
        if position_ms is None:
            return self._wall_clock()
        return self.session.started_at + timedelta(milliseconds=position_ms)

    def _open_source(self) -> None:
        open_source = getattr(self._source, "open", None)
        if callable(open_source):
            open_source()

    def _start_model_load(self) -> None:
        is_ready = getattr(self._detector, "is_ready", None)
        load_async = getattr(self._detector, "load_async", None)
        if not callable(load_async) or (callable(is_ready) and is_ready()):
            return
        if self._load_task is not None and not self._load_task.done():
            return
        self._load_task = asyncio.get_running_loop().create_task(self._load_model())

    async def _load_model(self) -> None:
        try:
            await self._detector.load_async()
        except Exception as exc:
            logger.error("[MONITOR] Detection model unavailable; cycles will be skipped: %s", exc)
