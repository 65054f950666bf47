"""Command-line entry point for the headless proctor monitor."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

from config import ConfigController
from core.app import AppConfig, run
from core.logging import logger, set_level


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(
        description="Monitor a candidate video feed and export a proctoring report."
    )
    parser.add_argument("--candidate-name", type=str, default="", help="Name written into the report.")
    parser.add_argument(
        "--source",
        type=str,
        help="Camera index or recorded video path (overrides video.source).",
    )
    parser.add_argument(
        "--duration-s",
        type=float,
        help="Stop monitoring after this many seconds (default: until Ctrl-C).",
    )
    parser.add_argument("--report-dir", type=Path, help="Directory for proctoring_report.csv.")
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Args:
        argv: Optional list of command-line arguments.

    Returns:
        Process exit code.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    if args.diagnostics:
        from diagnostics.run import main as diagnostics_main

        return diagnostics_main([])

    config = ConfigController.get_instance().get_config()
    set_level(str(config.get("logging_level", "INFO")))

    try:
        return run(
            AppConfig(
                candidate_name=args.candidate_name,
                source=args.source,
                duration_s=args.duration_s,
                report_dir=args.report_dir,
            )
        )
    except Exception as exc:
        logger.exception("An unexpected error occurred: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
