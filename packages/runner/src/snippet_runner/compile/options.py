from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class OutputKind(StrEnum):
    EXECUTABLE = "executable"
    LIBRARY = "library"


@dataclass(frozen=True, slots=True)
class CompilationOptions:
    output_kind: OutputKind = OutputKind.EXECUTABLE
    allow_unsafe: bool = True
    report_suppressed_diagnostics: bool = True
    unit_name: str = "InMemoryUnit"
    entry_name: str = "main"


# Options every snippet request is compiled with.
SNIPPET_OPTIONS = CompilationOptions()
