"""Application runtime entry points and lifecycle helpers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
import logging
from pathlib import Path

from config import ConfigController
from core.logging import enable_file_logging, log_info, logger
from hardware.video_source import CameraVideoSource, VideoSettings, parse_source
from proctoring.monitor import ProctorMonitor
from proctoring.report import export_report, render_csv
from proctoring.settings import ProctorSettings
from storage import StorageController
from vision.detector import DetectorSettings, ObjectDetector


LOGGER = logging.getLogger(__name__)

FINISH_POLL_S = 0.1


@dataclass(frozen=True)
class AppConfig:
    """Configuration for one headless monitoring run.

    Attributes:
        candidate_name: Name written into the report ("Unknown" if empty).
        source: Optional device index or file path overriding ``video.source``.
        duration_s: Stop after this many seconds; ``None`` runs until interrupted.
        report_dir: Optional directory for the report instead of the run directory.
    """

    candidate_name: str = ""
    source: str | None = None
    duration_s: float | None = None
    report_dir: Path | None = None


def build_monitor(config: AppConfig, settings: dict) -> ProctorMonitor:
    """Wire the video source, detector and monitor from loaded settings."""

    proctor_settings = ProctorSettings.from_config(settings)
    video_settings = VideoSettings.from_config(settings)
    if config.source is not None:
        video_settings = replace(video_settings, source=parse_source(config.source))
    if "file_step_ms" not in (settings.get("video") or {}):
        video_settings = replace(video_settings, file_step_ms=proctor_settings.sample_interval_ms)
    return ProctorMonitor(
        CameraVideoSource(video_settings),
        ObjectDetector(DetectorSettings.from_config(settings)),
        proctor_settings,
        candidate_name=config.candidate_name,
    )


async def monitor_until_done(monitor: ProctorMonitor, duration_s: float | None) -> bool:
    """Run ``monitor`` until ``duration_s`` elapses, a recording ends, or cancellation."""

    if not await monitor.start():
        return False
    loop = asyncio.get_running_loop()
    deadline = None if duration_s is None else loop.time() + duration_s
    try:
        while not monitor.source_finished:
            if deadline is None:
                await asyncio.sleep(FINISH_POLL_S)
                continue
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(FINISH_POLL_S, remaining))
        if monitor.source_finished:
            logger.info("Recording finished; ending monitoring")
    finally:
        await monitor.stop()
    return True


def run(config: AppConfig) -> int:
    """Run one monitoring session and export its report.

    Args:
        config: Application configuration values.

    Returns:
        Process exit code (0 for success).
    """

    settings = ConfigController.get_instance().get_config()
    storage = StorageController.get_instance()
    storage_info = storage.get_storage_info()
    if settings.get("file_logging_enabled", True):
        enable_file_logging(storage_info.log_file)
        logger.info("Writing logs to %s", storage_info.log_file)
    LOGGER.info("Storage ready (run_id=%s, run_dir=%s)", storage_info.run_id, storage_info.run_dir)

    monitor = build_monitor(config, settings)
    started = False
    try:
        started = asyncio.run(monitor_until_done(monitor, config.duration_s))
    except KeyboardInterrupt:
        logger.info("Monitoring interrupted by user")
        started = monitor.session is not None

    if not started:
        logger.warning("Monitoring did not start: %s", monitor.notice or "unknown reason")
        return 0

    report = monitor.report()
    report_dir = config.report_dir or storage.get_run_dir()
    path = export_report(report, report_dir)
    log_info(f"Final integrity score: {report.score} ({len(report.events)} events)", style="bold green")
    logger.debug("Report contents:\n%s", render_csv(report))
    log_info(f"Report saved to {path}")
    return 0
