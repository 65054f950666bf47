"""Command-line entry point for running diagnostics."""

from __future__ import annotations

import argparse
from pathlib import Path
import tempfile

from config.diagnostics import probe as config_probe
from core.diagnostics import probe as core_probe
from diagnostics.models import DiagnosticResult
from diagnostics.runner import format_results, run_diagnostics
from hardware.diagnostics import HardwareProbeConfig, probe as hardware_probe
from storage.diagnostics import probe as storage_probe


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(description="Run proctor monitor diagnostics probes.")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run probes against a temporary offline directory.",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Optional base directory for offline diagnostics.",
    )
    return parser.parse_args(argv)


def collect_results(base_dir: Path | None = None, offline: bool = False) -> list[DiagnosticResult]:
    """Run every subsystem probe, optionally against ``base_dir``."""

    def config_probe_with_base():
        return config_probe(base_dir=base_dir)

    def core_probe_live():
        return core_probe()

    def hardware_probe_live():
        if offline:
            return hardware_probe(
                config=HardwareProbeConfig(require_all=False),
                available_modules={"cv2", "ultralytics"},
            )
        return hardware_probe(config=HardwareProbeConfig(require_all=False))

    def storage_probe_with_base():
        return storage_probe(base_dir=base_dir)

    return run_diagnostics(
        [
            config_probe_with_base,
            core_probe_live,
            hardware_probe_live,
            storage_probe_with_base,
        ]
    )


def main(argv: list[str] | None = None) -> int:
    """Run diagnostics and return an exit code."""

    args = parse_args(argv)
    base_dir = args.base_dir

    if args.offline and base_dir is None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_base = Path(tmp_dir)
            config_dir = tmp_base / "config"
            config_dir.mkdir(parents=True, exist_ok=True)
            (config_dir / "default.yaml").write_text("proctoring: {}\n", encoding="utf-8")
            results = collect_results(base_dir=tmp_base, offline=True)
    else:
        results = collect_results(base_dir=base_dir, offline=args.offline)

    print(format_results(results))
    return 1 if any(result.failed for result in results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
