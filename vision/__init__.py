"""Vision package exports."""

from vision.detections import Detection, FrameContext, VideoFrame

__all__ = ["Detection", "FrameContext", "VideoFrame", "ObjectDetector", "DetectorSettings"]


def __getattr__(name: str):
    if name in {"ObjectDetector", "DetectorSettings"}:
        from vision import detector

        return getattr(detector, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
