"""Object-detection adapter around an Ultralytics YOLO model (COCO labels)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import importlib
import importlib.util
import math
import threading
from typing import Any, Mapping

from core.logging import logger
from proctoring.errors import ModelNotReady
from vision.detections import Detection, VideoFrame


@dataclass(frozen=True)
class DetectorSettings:
    """Runtime settings for object detection."""

    model: str = "yolov8n.pt"
    device: str = "cpu"
    min_confidence: float = 0.5
    max_detections: int = 20
    imgsz: int = 640

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "DetectorSettings":
        section = config.get("detector") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            return cls()
        defaults = cls()
        return cls(
            model=str(section.get("model", defaults.model)),
            device=str(section.get("device", defaults.device)),
            min_confidence=float(section.get("min_confidence", defaults.min_confidence)),
            max_detections=int(section.get("max_detections", defaults.max_detections)),
            imgsz=int(section.get("imgsz", defaults.imgsz)),
        )


class ObjectDetector:
    """Loads the model once and turns frames into labeled detections."""

    def __init__(self, settings: DetectorSettings | None = None) -> None:
        self.settings = settings or DetectorSettings()
        self._lock = threading.Lock()
        self._predict_lock = threading.Lock()
        self._model: Any = None
        self._load_error = ""

    def is_ready(self) -> bool:
        with self._lock:
            return self._model is not None

    @property
    def load_error(self) -> str:
        return self._load_error

    def load(self) -> None:
        """Load the model (blocking; safe to call repeatedly)."""

        with self._lock:
            if self._model is not None:
                return
        try:
            model = self._create_model(self.settings.model)
        except Exception as exc:
            self._load_error = str(exc)
            logger.exception("[DETECTOR] Failed to load %s: %s", self.settings.model, exc)
            raise
        with self._lock:
            self._model = model
        logger.info(
            "[DETECTOR] Loaded %s on %s (min_confidence=%.2f)",
            self.settings.model,
            self.settings.device,
            self.settings.min_confidence,
        )

    async def load_async(self) -> None:
        await asyncio.to_thread(self.load)

    async def detect(self, frame: VideoFrame) -> list[Detection]:
        """Run inference on ``frame`` in a worker thread."""

        with self._lock:
            model = self._model
        if model is None:
            raise ModelNotReady(self._load_error or "detection model is still loading")
        raw_detections = await asyncio.to_thread(self._predict_serialized, model, frame)
        return self._convert_raw_detections(raw_detections, frame)

    def _create_model(self, weights: str) -> Any:
        if importlib.util.find_spec("ultralytics") is None:
            raise RuntimeError("ultralytics is required for ObjectDetector")
        ultralytics = importlib.import_module("ultralytics")
        return ultralytics.YOLO(weights)

    def _predict_serialized(self, model: Any, frame: VideoFrame) -> list[dict[str, Any]]:
        # One model instance is never entered from two threads at once.
        with self._predict_lock:
            return self._predict(model, frame)

    def _predict(self, model: Any, frame: VideoFrame) -> list[dict[str, Any]]:
        results = model.predict(
            frame.image,
            imgsz=self.settings.imgsz,
            conf=self.settings.min_confidence,
            device=self.settings.device,
            max_det=self.settings.max_detections,
            verbose=False,
        )
        raw: list[dict[str, Any]] = []
        for result in results:
            names = result.names
            boxes = result.boxes.xyxy.cpu().numpy()
            scores = result.boxes.conf.cpu().numpy()
            classes = result.boxes.cls.cpu().numpy()
            for box, score, cls_id in zip(boxes, scores, classes):
                x1, y1, x2, y2 = (float(value) for value in box[:4])
                raw.append(
                    {
                        "label": names[int(cls_id)],
                        "confidence": float(score),
                        "xmin": x1,
                        "ymin": y1,
                        "xmax": x2,
                        "ymax": y2,
                    }
                )
        return raw

    def _convert_raw_detections(
        self,
        raw_detections: list[Any],
        frame: VideoFrame,
    ) -> list[Detection]:
        normalized: list[Detection] = []
        for raw in raw_detections:
            detection = self._convert_single_detection(raw, frame)
            if detection is None:
                continue
            normalized.append(detection)
            if len(normalized) >= self.settings.max_detections:
                break
        return normalized

    def _convert_single_detection(self, raw: Any, frame: VideoFrame) -> Detection | None:
        if not isinstance(raw, Mapping):
            return None

        confidence = self._extract_confidence(raw)
        if confidence < self.settings.min_confidence:
            return None

        bbox = self._extract_bbox(raw, frame)
        if bbox is None:
            return None

        return Detection(
            label=self._extract_label(raw),
            bbox=bbox,
            confidence=confidence,
            metadata={"model": self.settings.model},
        )

    def _extract_confidence(self, payload: Mapping[str, Any]) -> float:
        value = payload.get("confidence", payload.get("score", 0.0))
        number = self._to_finite_float(value)
        if number is None:
            return 0.0
        return max(0.0, min(1.0, number))

    def _extract_label(self, payload: Mapping[str, Any]) -> str:
        value = payload.get("label", payload.get("class", "unknown"))
        label = str(value).strip() if value is not None else "unknown"
        return label or "unknown"

    def _extract_bbox(
        self,
        payload: Mapping[str, Any],
        frame: VideoFrame,
    ) -> tuple[float, float, float, float] | None:
        if {"xmin", "ymin", "xmax", "ymax"}.issubset(payload.keys()):
            xmin = self._to_finite_float(payload["xmin"])
            ymin = self._to_finite_float(payload["ymin"])
            xmax = self._to_finite_float(payload["xmax"])
            ymax = self._to_finite_float(payload["ymax"])
            if None in (xmin, ymin, xmax, ymax):
                return None
            return self._clamp_bbox(xmin, ymin, xmax - xmin, ymax - ymin, frame)

        raw_bbox = payload.get("bbox")
        if isinstance(raw_bbox, (list, tuple)) and len(raw_bbox) >= 4:
            values = [self._to_finite_float(value) for value in raw_bbox[:4]]
            if None in values:
                return None
            x, y, w, h = values
            return self._clamp_bbox(x, y, w, h, frame)

        return None

    def _to_finite_float(self, value: Any) -> float | None:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        if math.isnan(number) or math.isinf(number):
            return None
        return number

    def _clamp_bbox(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        frame: VideoFrame,
    ) -> tuple[float, float, float, float]:
        width = float(frame.width)
        height = float(frame.height)
        x = max(0.0, min(width, x))
        y = max(0.0, min(height, y))
        w = max(0.0, min(width - x, w))
        h = max(0.0, min(height - y, h))
        return (x, y, w, h)
