"""Diagnostics routines for capture and detection dependencies."""

from __future__ import annotations

import importlib.util
from dataclasses import dataclass

from diagnostics.models import DiagnosticResult, DiagnosticStatus


@dataclass(frozen=True)
class HardwareProbeConfig:
    """Configuration for capture dependency checks."""

    require_all: bool = False


def probe(config: HardwareProbeConfig | None = None, available_modules: set[str] | None = None) -> DiagnosticResult:
    """Check that the camera and detection backends can be imported.

    Args:
        config: Optional configuration for probe behavior.
        available_modules: Optional override set for offline testing.

    Returns:
        Diagnostic result indicating capture/detection readiness.
    """

    name = "hardware"
    settings = config or HardwareProbeConfig()
    required = ["cv2"]
    optional = ["ultralytics"]

    missing: list[str] = []
    for module_name in required + optional:
        if available_modules is not None:
            is_available = module_name in available_modules
        else:
            is_available = importlib.util.find_spec(module_name) is not None
        if not is_available:
            missing.append(module_name)

    if not missing:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.PASS,
            details="Capture and detection dependencies available",
        )

    details = f"Missing capture/detection deps: {', '.join(missing)}"
    if settings.require_all or any(module_name in required for module_name in missing):
        return DiagnosticResult(name=name, status=DiagnosticStatus.FAIL, details=details)
    return DiagnosticResult(name=name, status=DiagnosticStatus.WARN, details=details)
