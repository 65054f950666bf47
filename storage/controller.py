"""Filesystem layout for run logs and exported reports."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import threading

from config import ConfigController


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageInfo:
    """Metadata about the current storage run."""

    run_id: int
    run_id_file: Path
    run_dir: Path
    log_dir: Path
    log_file: Path


class StorageController:
    """Singleton controller resolving per-run output locations."""

    _instance: "StorageController | None" = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        if StorageController._instance is not None:
            raise RuntimeError("You cannot create another StorageController class")

        self.config_controller = ConfigController.get_instance()
        self.config = self.config_controller.get_config()

        var_dir, log_dir = self._resolve_storage_dirs()
        self.log_dir = log_dir

        self.run_id_file = var_dir / "current_run"
        self.run_id = self.get_next_run_number(var_dir)
        StorageController._instance = self

    @classmethod
    def get_instance(cls) -> "StorageController":
        """Return the singleton instance of the controller."""

        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def get_next_run_number(self, var_dir: Path) -> int:
        """Return the next run number, persisting to the run-id file."""

        var_dir.mkdir(parents=True, exist_ok=True)

        next_run_number = 0
        if self.run_id_file.is_file():
            current_run_number = self.run_id_file.read_text(encoding="utf-8").strip()
            if current_run_number:
                next_run_number = int(current_run_number) + 1
        self.run_id_file.write_text(str(next_run_number), encoding="utf-8")
        return next_run_number

    def get_current_run_number(self) -> int:
        """Return the current run id."""

        return int(self.run_id)

    def get_log_file_path(self) -> Path:
        """Return the log file path for the current run."""

        return self.log_dir / f"run_{self.run_id}.log"

    def get_run_dir(self) -> Path:
        """Return the artifact directory for the current run (reports land here)."""

        run_dir = self.log_dir / f"run_{self.run_id}"
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def get_storage_info(self) -> StorageInfo:
        """Return metadata about the current run storage."""

        return StorageInfo(
            run_id=self.run_id,
            run_id_file=self.run_id_file,
            run_dir=self.get_run_dir(),
            log_dir=self.log_dir,
            log_file=self.get_log_file_path(),
        )

    def _resolve_storage_dirs(self) -> tuple[Path, Path]:
        """Resolve storage directories from configuration."""

        storage_config = self.config.get("storage", {})
        var_dir = storage_config.get("var_dir", self.config.get("var_dir", "./var/"))
        log_dir = storage_config.get("log_dir", self.config.get("log_dir", "./log/"))

        return Path(var_dir).expanduser(), Path(log_dir).expanduser()
