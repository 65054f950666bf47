"""Tests for the diagnostics runner and CLI."""

from __future__ import annotations

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from diagnostics.run import main
from diagnostics.runner import format_results, run_diagnostics


def _passing() -> DiagnosticResult:
    return DiagnosticResult(name="video", status=DiagnosticStatus.PASS, details="ok")


def _exploding() -> DiagnosticResult:
    raise RuntimeError("probe crashed")


def test_run_diagnostics_turns_exceptions_into_failures() -> None:
    results = run_diagnostics([_passing, _exploding])

    assert [result.status for result in results] == [DiagnosticStatus.PASS, DiagnosticStatus.FAIL]
    assert results[1].name == "_exploding"
    assert results[1].failed is True
    assert "probe crashed" in results[1].details


def test_format_results_summarizes_failures() -> None:
    text = format_results(run_diagnostics([_passing, _exploding]))

    assert text.startswith("Proctor monitor diagnostics")
    assert "[PASS] video: ok" in text
    assert text.endswith("2 probes, 1 failed")


def test_offline_cli_passes(capsys) -> None:
    exit_code = main(["--offline"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "[PASS] config" in output
    assert "[PASS] storage" in output
