"""Fixed-cadence sampler that drives the detection-to-event pipeline."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum
import time
from typing import Callable, Protocol

from core.logging import logger
from proctoring.engine import RuleEngine
from proctoring.errors import ModelNotReady, VideoNotReady
from proctoring.session import utc_now
from proctoring.settings import ProctorSettings
from vision.detections import Detection, FrameContext, VideoFrame


STATUS_LOG_PERIOD_MS = 15000


def monotonic_ms() -> int:
    """Return a monotonic clock reading in milliseconds."""

    return int(time.monotonic() * 1000)


class TickOutcome(str, Enum):
    """Result of a single sampling tick."""

    RAN = "ran"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"
    SKIPPED_VIDEO_NOT_READY = "skipped_video_not_ready"
    SKIPPED_MODEL_NOT_READY = "skipped_model_not_ready"
    DISCARDED = "discarded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FrameSource(Protocol):
    def is_ready(self) -> bool:
        ...

    def read(self) -> VideoFrame:
        ...


class FrameDetector(Protocol):
    async def detect(self, frame: VideoFrame) -> list[Detection]:
        ...


class Sampler:
    """Runs one detection cycle per interval with at most one in flight.

    A tick that fires while the previous cycle is still awaiting the detector
    is skipped rather than queued. Stopping cancels the ticker only; an
    outstanding cycle finishes and its result is discarded.
    """

    def __init__(
        self,
        source: FrameSource,
        detector: FrameDetector,
        engine: RuleEngine,
        settings: ProctorSettings | None = None,
        *,
        clock: Callable[[], int] = monotonic_ms,
        wall_clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._detector = detector
        self._engine = engine
        self.settings = settings or ProctorSettings()
        self._clock = clock
        self._wall_clock = wall_clock

        self._in_flight = False
        self._abandoned: asyncio.Future[list[Detection]] | None = None
        self._running = False
        self._generation = 0
        self._ticker: asyncio.Task[None] | None = None
        self._cycles: set[asyncio.Task[TickOutcome]] = set()
        self._outcomes: Counter[TickOutcome] = Counter()
        self._ticks = 0
        self._last_status_log_ms = 0
        self._media_origin: tuple[int, datetime] | None = None
        self._media_position_ms: int | None = None

    @property
    def in_flight(self) -> bool:
        """True while a cycle runs or an abandoned detection has not finished."""

        return self._in_flight or self._abandoned is not None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def media_position_ms(self) -> int | None:
        """Position of the last evaluated recorded frame, if any."""

        return self._media_position_ms

    def start(self) -> None:
        """Start ticking on the running event loop (safe to call repeatedly)."""

        if self._running:
            return
        self._running = True
        now_ms = self._clock()
        self._last_status_log_ms = now_ms
        self._media_origin = (now_ms, self._wall_clock())
        self._engine.arm(now_ms)
        self._ticker = asyncio.get_running_loop().create_task(self._run(), name="proctor-sampler")
        logger.info("[SAMPLER] Started (interval=%sms)", self.settings.sample_interval_ms)

    async def stop(self) -> None:
        """Stop scheduling ticks; any in-flight result will be discarded."""

        if not self._running:
            return
        self._running = False
        self._generation += 1
        ticker = self._ticker
        self._ticker = None
        if ticker is not None:
            ticker.cancel()
            try:
                await ticker
            except asyncio.CancelledError:
                pass
        logger.info("[SAMPLER] Stopped after %d ticks", self._ticks)

    async def wait_idle(self) -> None:
        """Wait for outstanding cycles and abandoned detections to finish."""

        pending: list[asyncio.Future] = list(self._cycles)
        if self._abandoned is not None:
            pending.append(self._abandoned)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def tick(self) -> TickOutcome:
        """Run one sampling cycle unless another one is still in flight."""

        self._ticks += 1
        if self.in_flight:
            logger.debug("[SAMPLER] Previous detection still in flight; skipping tick")
            return self._record(TickOutcome.SKIPPED_IN_FLIGHT)
        if not self._source.is_ready():
            return self._record(TickOutcome.SKIPPED_VIDEO_NOT_READY)

        self._in_flight = True
        generation = self._generation
        try:
            try:
                frame = await asyncio.to_thread(self._source.read)
            except VideoNotReady:
                return self._record(TickOutcome.SKIPPED_VIDEO_NOT_READY)

            try:
                detections = await self._detect(frame)
            except ModelNotReady:
                logger.debug("[SAMPLER] Model not ready; skipping tick")
                return self._record(TickOutcome.SKIPPED_MODEL_NOT_READY)
            except asyncio.TimeoutError:
                logger.warning(
                    "[SAMPLER] Detection exceeded %sms watchdog; new cycles wait for it to finish",
                    self.settings.detect_timeout_ms,
                )
                return self._record(TickOutcome.TIMED_OUT)
            except Exception as exc:
                logger.exception("[SAMPLER] Detection failed (retrying next tick): %s", exc)
                return self._record(TickOutcome.FAILED)

            if generation != self._generation:
                return self._record(TickOutcome.DISCARDED)

            context = self._build_context(detections, frame)
            self._engine.evaluate(context, context.captured_at_ms)
            return self._record(TickOutcome.RAN)
        finally:
            self._in_flight = False

    def _build_context(self, detections: list[Detection], frame: VideoFrame) -> FrameContext:
        if frame.position_ms is None:
            now_ms = self._clock()
            captured_at = self._wall_clock()
        else:
            # Recorded frames run on media time anchored at sampler start.
            if self._media_origin is None:
                self._media_origin = (self._clock(), self._wall_clock())
            origin_ms, origin_at = self._media_origin
            now_ms = origin_ms + frame.position_ms
            captured_at = origin_at + timedelta(milliseconds=frame.position_ms)
            self._media_position_ms = frame.position_ms
        return FrameContext(
            detections=tuple(detections),
            frame_width=frame.width,
            frame_height=frame.height,
            captured_at_ms=now_ms,
            captured_at=captured_at,
        )

    def get_runtime_status(self) -> dict[str, int | str]:
        """Return tick counters for health logging."""

        status: dict[str, int | str] = {
            "running": int(self._running),
            "in_flight": int(self.in_flight),
            "ticks": self._ticks,
        }
        for outcome in TickOutcome:
            status[outcome.value] = self._outcomes.get(outcome, 0)
        return status

    async def _detect(self, frame: VideoFrame) -> list[Detection]:
        timeout_ms = self.settings.detect_timeout_ms
        if not timeout_ms:
            return await self._detector.detect(frame)

        # A timed-out detection keeps running in its worker thread, so it stays
        # tracked and blocks new cycles until it completes.
        detection = asyncio.ensure_future(self._detector.detect(frame))
        done, _ = await asyncio.wait({detection}, timeout=timeout_ms / 1000.0)
        if not done:
            self._abandoned = detection
            detection.add_done_callback(self._release_abandoned)
            raise asyncio.TimeoutError
        return detection.result()

    def _release_abandoned(self, detection: asyncio.Future[list[Detection]]) -> None:
        if self._abandoned is detection:
            self._abandoned = None
        if detection.cancelled():
            return
        exc = detection.exception()
        if exc is not None:
            logger.warning("[SAMPLER] Abandoned detection failed late: %s", exc)
        else:
            logger.debug("[SAMPLER] Abandoned detection finished; result dropped")

    async def _run(self) -> None:
        interval_s = max(self.settings.sample_interval_ms, 1) / 1000.0
        while self._running:
            await asyncio.sleep(interval_s)
            if not self._running:
                break
            cycle = asyncio.get_running_loop().create_task(self.tick())
            self._cycles.add(cycle)
            cycle.add_done_callback(self._cycles.discard)
            self._maybe_log_status()

    def _maybe_log_status(self) -> None:
        now_ms = self._clock()
        if (now_ms - self._last_status_log_ms) < STATUS_LOG_PERIOD_MS:
            return
        self._last_status_log_ms = now_ms
        status = self.get_runtime_status()
        logger.info(
            "[SAMPLER] Status: ticks=%s ran=%s in_flight_skips=%s video_skips=%s "
            "model_skips=%s failed=%s timed_out=%s",
            status["ticks"],
            status[TickOutcome.RAN.value],
            status[TickOutcome.SKIPPED_IN_FLIGHT.value],
            status[TickOutcome.SKIPPED_VIDEO_NOT_READY.value],
            status[TickOutcome.SKIPPED_MODEL_NOT_READY.value],
            status[TickOutcome.FAILED.value],
            status[TickOutcome.TIMED_OUT.value],
        )

    def _record(self, outcome: TickOutcome) -> TickOutcome:
        self._outcomes[outcome] += 1
        return outcome
