"""Diagnostics routines for the storage subsystem."""

from __future__ import annotations

from pathlib import Path

from diagnostics.models import DiagnosticResult, DiagnosticStatus


def probe(base_dir: Path | None = None) -> DiagnosticResult:
    """Check that run-id and report directories are writable.

    Args:
        base_dir: Optional base directory for offline testing.

    Returns:
        Diagnostic result indicating storage readiness.
    """

    name = "storage"
    try:
        if base_dir is None:
            from config import ConfigController

            config = ConfigController.get_instance().get_config()
            storage_config = config.get("storage", {})
            var_dir = Path(
                storage_config.get("var_dir", config.get("var_dir", "./var/"))
            ).expanduser()
            log_dir = Path(
                storage_config.get("log_dir", config.get("log_dir", "./log/"))
            ).expanduser()
        else:
            var_dir = base_dir / "var"
            log_dir = base_dir / "log"

        var_dir.mkdir(parents=True, exist_ok=True)
        log_dir.mkdir(parents=True, exist_ok=True)

        for directory in (var_dir, log_dir):
            sentinel = directory / "diagnostics_probe.txt"
            sentinel.write_text("ok", encoding="utf-8")
            sentinel.unlink(missing_ok=True)

        details = f"Report and log directories writable at {log_dir}"
        return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details=details)
    except OSError as exc:
        details = f"Filesystem access failed: {exc}"
        return DiagnosticResult(name=name, status=DiagnosticStatus.FAIL, details=details)
