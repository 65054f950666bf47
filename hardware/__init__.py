"""Capture hardware package."""

from hardware.video_source import CameraVideoSource, VideoSettings

__all__ = [
    "CameraVideoSource",
    "VideoSettings",
]
