from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

from snippet_runner.diagnostics import Severity


class DiagnosticSeverity(StrEnum):
    HIDDEN = "hidden"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CompilerDiagnostic:
    message: str
    severity: DiagnosticSeverity
    code: str | None = None
    line: int | None = None
    column: int | None = None

    def format(self) -> str:
        where = ""
        if self.line is not None:
            where = f"({self.line},{self.column or 0}): "
        code = f"{self.code}: " if self.code else ""
        return f"{where}{self.severity.value} {code}{self.message}"

    @property
    def is_error(self) -> bool:
        return self.severity is DiagnosticSeverity.ERROR


SEVERITY_MAP: Mapping[DiagnosticSeverity, Severity] = MappingProxyType(
    {
        DiagnosticSeverity.ERROR: Severity.ERROR,
        DiagnosticSeverity.WARNING: Severity.WARNING,
    }
)


def map_severity(severity: DiagnosticSeverity) -> Severity:
    """Compiler severity -> sink severity; anything unmapped is Info."""
    return SEVERITY_MAP.get(severity, Severity.INFO)
