"""Stable detection schemas for the proctoring pipeline.

Bounding boxes are expressed in source-frame pixels as ``(x, y, width, height)``
where ``(x, y)`` is the top-left corner.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Detection:
    """Single labeled bounding box returned for one frame."""

    label: str
    bbox: tuple[float, float, float, float]
    confidence: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def center_x(self) -> float:
        x, _, width, _ = self.bbox
        return x + width / 2.0

    @property
    def height(self) -> float:
        return self.bbox[3]


@dataclass(frozen=True)
class VideoFrame:
    """Decodable frame together with its pixel dimensions.

    ``position_ms`` is the offset into a recorded file, or ``None`` for live
    sources where wall-clock time applies.
    """

    image: Any
    width: int
    height: int
    position_ms: int | None = None


@dataclass(frozen=True)
class FrameContext:
    """Detection snapshot for one sampling tick."""

    detections: tuple[Detection, ...]
    frame_width: int
    frame_height: int
    captured_at_ms: int
    captured_at: datetime

    def with_label(self, label: str) -> list[Detection]:
        """Return detections matching ``label`` in model order."""

        return [detection for detection in self.detections if detection.label == label]
