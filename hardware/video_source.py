"""OpenCV-backed video source for webcams and recorded sessions."""

from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Any, Mapping

from core.logging import logger
from proctoring.errors import CaptureDenied, VideoNotReady
from vision.detections import VideoFrame


def _require_capture_deps() -> Any:
    import importlib
    import importlib.util

    if importlib.util.find_spec("cv2") is None:
        raise CaptureDenied("opencv-python is required for CameraVideoSource")
    return importlib.import_module("cv2")


@dataclass(frozen=True)
class VideoSettings:
    """Capture settings for the video source.

    Attributes:
        source: Device index, stream URL or recorded file path.
        width: Optional capture width for live devices.
        height: Optional capture height for live devices.
        file_step_ms: Media time advanced per read of a recorded file.
        drain_grabs: Buffered frames dropped before each live read.
    """

    source: int | str = 0
    width: int | None = None
    height: int | None = None
    file_step_ms: int = 1000
    drain_grabs: int = 1

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "VideoSettings":
        section = config.get("video") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            return cls()
        defaults = cls()
        source = section.get("source", 0)
        width = section.get("width")
        height = section.get("height")
        return cls(
            source=parse_source(source),
            width=int(width) if width else None,
            height=int(height) if height else None,
            file_step_ms=int(section.get("file_step_ms", defaults.file_step_ms)),
            drain_grabs=int(section.get("drain_grabs", defaults.drain_grabs)),
        )

    @property
    def is_live(self) -> bool:
        """Device indices and stream URLs are live; plain paths are recordings."""

        return isinstance(self.source, int) or "://" in self.source


def parse_source(value: Any) -> int | str:
    """Return a device index for numeric values, otherwise a path/URL string."""

    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


class CameraVideoSource:
    """Continuously readable frame source with a readiness check.

    Live sources always return the newest frame. Recorded files are sampled
    at fixed media-time steps and stamp each frame with its position, so a
    recording is scored on video time rather than playback speed.
    """

    def __init__(self, settings: VideoSettings | None = None) -> None:
        self.settings = settings or VideoSettings()
        self._lock = threading.Lock()
        self._capture: Any = None
        self._cv2: Any = None
        self._frames_read = 0
        self._next_position_ms = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once a recorded file has no more frames to sample."""

        return self._finished

    def open(self) -> None:
        """Open the capture device; raises :class:`CaptureDenied` on failure."""

        with self._lock:
            if self._capture is not None:
                return
            cv2 = _require_capture_deps()
            capture = cv2.VideoCapture(self.settings.source)
            if not capture.isOpened():
                capture.release()
                raise CaptureDenied(f"Could not open video source {self.settings.source!r}")
            if self.settings.is_live:
                if self.settings.width:
                    capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.settings.width)
                if self.settings.height:
                    capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.settings.height)
                capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            self._cv2 = cv2
            self._capture = capture
            self._next_position_ms = 0
            self._finished = False
        logger.info(
            "[VIDEO] Opened %s source %r",
            "live" if self.settings.is_live else "recorded",
            self.settings.source,
        )

    def close(self) -> None:
        with self._lock:
            capture = self._capture
            self._capture = None
        if capture is not None:
            capture.release()
            logger.info("[VIDEO] Released source after %d frames", self._frames_read)

    def is_ready(self) -> bool:
        with self._lock:
            return (
                self._capture is not None
                and not self._finished
                and bool(self._capture.isOpened())
            )

    def read(self) -> VideoFrame:
        """Grab the current frame; raises :class:`VideoNotReady` if none decodes."""

        with self._lock:
            capture = self._capture
            if capture is None:
                raise VideoNotReady("video source is not open")
            if self.settings.is_live:
                position_ms = None
                ok, image = self._read_latest(capture)
            else:
                position_ms = self._next_position_ms
                capture.set(self._cv2.CAP_PROP_POS_MSEC, float(position_ms))
                ok, image = capture.read()
                if not ok or image is None:
                    self._finished = True
                    logger.info("[VIDEO] Recording ended at %d ms", position_ms)
                    raise VideoNotReady("end of recording")
                self._next_position_ms += self.settings.file_step_ms
        if not ok or image is None:
            raise VideoNotReady("no decodable frame available")
        self._frames_read += 1
        height, width = image.shape[:2]
        return VideoFrame(image=image, width=int(width), height=int(height), position_ms=position_ms)

    def _read_latest(self, capture: Any) -> tuple[bool, Any]:
        for _ in range(max(self.settings.drain_grabs, 0)):
            capture.grab()
        if not capture.grab():
            return False, None
        return capture.retrieve()
