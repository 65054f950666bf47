"""Configuration controller for YAML-based monitor settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading and updating configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml") -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = Path("config")
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        with self.paths.config_file.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_config(config)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill missing monitor sections so consumers can rely on their keys."""

        normalized = dict(config)
        proctoring_cfg = dict(normalized.get("proctoring") or {})
        detector_cfg = dict(normalized.get("detector") or {})
        video_cfg = dict(normalized.get("video") or {})
        storage_cfg = dict(normalized.get("storage") or {})

        proctoring_cfg["sample_interval_ms"] = int(proctoring_cfg.get("sample_interval_ms", 1000))
        timeout_ms = proctoring_cfg.get("detect_timeout_ms")
        proctoring_cfg["detect_timeout_ms"] = int(timeout_ms) if timeout_ms else None
        proctoring_cfg["absence_after_ms"] = int(proctoring_cfg.get("absence_after_ms", 5000))
        proctoring_cfg["multiple_faces_cooldown_ms"] = int(
            proctoring_cfg.get("multiple_faces_cooldown_ms", 5000)
        )
        proctoring_cfg["prohibited_cooldown_ms"] = int(
            proctoring_cfg.get("prohibited_cooldown_ms", 2000)
        )
        proctoring_cfg["looking_away_cooldown_ms"] = int(
            proctoring_cfg.get("looking_away_cooldown_ms", 5000)
        )
        proctoring_cfg["prohibited_labels"] = [
            str(label)
            for label in proctoring_cfg.get(
                "prohibited_labels",
                ["cell phone", "book", "laptop", "keyboard", "remote"],
            )
        ]

        detector_cfg["model"] = str(detector_cfg.get("model", "yolov8n.pt"))
        detector_cfg["min_confidence"] = float(detector_cfg.get("min_confidence", 0.5))
        detector_cfg["max_detections"] = int(detector_cfg.get("max_detections", 20))

        video_cfg.setdefault("source", 0)

        storage_cfg["var_dir"] = str(storage_cfg.get("var_dir", normalized.get("var_dir", "./var/")))
        storage_cfg["log_dir"] = str(storage_cfg.get("log_dir", normalized.get("log_dir", "./log/")))

        normalized["proctoring"] = proctoring_cfg
        normalized["detector"] = detector_cfg
        normalized["video"] = video_cfg
        normalized["storage"] = storage_cfg
        return normalized
