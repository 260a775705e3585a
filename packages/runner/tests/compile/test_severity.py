from __future__ import annotations

import pytest

from snippet_runner.compile import CompilerDiagnostic, DiagnosticSeverity, map_severity
from snippet_runner.diagnostics import Severity


@pytest.mark.parametrize(
    "compiler_severity, expected",
    [
        (DiagnosticSeverity.ERROR, Severity.ERROR),
        (DiagnosticSeverity.WARNING, Severity.WARNING),
        (DiagnosticSeverity.INFO, Severity.INFO),
        (DiagnosticSeverity.HIDDEN, Severity.INFO),
    ],
)
def test_map_severity(compiler_severity: DiagnosticSeverity, expected: Severity) -> None:
    assert map_severity(compiler_severity) is expected


def test_diagnostic_format_with_location() -> None:
    d = CompilerDiagnostic("boom", DiagnosticSeverity.ERROR, "PY0001", line=3, column=5)
    assert d.format() == "(3,5): error PY0001: boom"
    assert d.is_error


def test_diagnostic_format_without_location_or_code() -> None:
    d = CompilerDiagnostic("heads up", DiagnosticSeverity.WARNING)
    assert d.format() == "warning heads up"
    assert not d.is_error
