"""Typed settings for the sampling and rule pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from proctoring.events import EventKind


DEFAULT_PROHIBITED_LABELS = ("cell phone", "book", "laptop", "keyboard", "remote")

DEFAULT_SCORE_WEIGHTS = {
    EventKind.NO_FACE: 5,
    EventKind.MULTIPLE_FACES: 5,
    EventKind.SUSPICIOUS_ITEM: 10,
    EventKind.EYES_CLOSED: 10,
    EventKind.LOOKING_AWAY: 5,
}


@dataclass(frozen=True)
class ProctorSettings:
    """Configuration values for the sampler and behavioral rules."""

    sample_interval_ms: int = 1000
    detect_timeout_ms: int | None = None
    person_label: str = "person"
    absence_after_ms: int = 5000
    multiple_faces_cooldown_ms: int = 5000
    prohibited_cooldown_ms: int = 2000
    prohibited_labels: tuple[str, ...] = DEFAULT_PROHIBITED_LABELS
    looking_away_cooldown_ms: int = 5000
    gaze_min_x: float = 0.35
    gaze_max_x: float = 0.65
    eyes_closed_max_height_ratio: float = 0.10
    score_weights: Mapping[EventKind, int] = field(
        default_factory=lambda: dict(DEFAULT_SCORE_WEIGHTS)
    )

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "ProctorSettings":
        """Build settings from the ``proctoring`` section of the app config."""

        section = config.get("proctoring") if isinstance(config, Mapping) else None
        if not isinstance(section, Mapping):
            return cls()
        defaults = cls()

        labels_value = section.get("prohibited_labels")
        if isinstance(labels_value, (list, tuple)):
            labels = tuple(str(item) for item in labels_value)
        else:
            labels = defaults.prohibited_labels

        weights = dict(defaults.score_weights)
        weights_value = section.get("score_weights")
        if isinstance(weights_value, Mapping):
            for key, value in weights_value.items():
                weights[EventKind(str(key))] = int(value)

        timeout_value = section.get("detect_timeout_ms")
        return cls(
            sample_interval_ms=int(section.get("sample_interval_ms", defaults.sample_interval_ms)),
            detect_timeout_ms=int(timeout_value) if timeout_value else None,
            person_label=str(section.get("person_label", defaults.person_label)),
            absence_after_ms=int(section.get("absence_after_ms", defaults.absence_after_ms)),
            multiple_faces_cooldown_ms=int(
                section.get("multiple_faces_cooldown_ms", defaults.multiple_faces_cooldown_ms)
            ),
            prohibited_cooldown_ms=int(
                section.get("prohibited_cooldown_ms", defaults.prohibited_cooldown_ms)
            ),
            prohibited_labels=labels,
            looking_away_cooldown_ms=int(
                section.get("looking_away_cooldown_ms", defaults.looking_away_cooldown_ms)
            ),
            gaze_min_x=float(section.get("gaze_min_x", defaults.gaze_min_x)),
            gaze_max_x=float(section.get("gaze_max_x", defaults.gaze_max_x)),
            eyes_closed_max_height_ratio=float(
                section.get(
                    "eyes_closed_max_height_ratio",
                    defaults.eyes_closed_max_height_ratio,
                )
            ),
            score_weights=weights,
        )
