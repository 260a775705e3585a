from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from snippet_runner.compile import CompilationResult
from snippet_runner.core.json import atomic_write_json
from snippet_runner.execute import ExecutionOutcome

RunStatus = str  # "completed" | "no_entry_point" | "faulted" | "compile_failed"


@dataclass(slots=True)
class RunReport:
    run_id: str
    started_at_utc: str
    finished_at_utc: str
    status: RunStatus
    duration_ms: int

    compilation: CompilationResult
    outcome: Optional[ExecutionOutcome] = None
    timings: dict[str, int | None] = field(default_factory=dict)
    error_events: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "started_at_utc": self.started_at_utc,
            "finished_at_utc": self.finished_at_utc,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "compilation": {
                "kind": self.compilation.kind,
                "diagnostics": [
                    {
                        "message": d.message,
                        "severity": d.severity.value,
                        "code": d.code,
                        "line": d.line,
                        "column": d.column,
                    }
                    for d in self.compilation.diagnostics
                ],
            },
            "outcome": None if self.outcome is None else asdict(self.outcome),
            "timings": dict(self.timings),
            "error_events": self.error_events,
        }

    def write_json(self, path: Path) -> None:
        atomic_write_json(Path(path), self.to_dict())


def status_for(
    compilation: CompilationResult, outcome: ExecutionOutcome | None
) -> RunStatus:
    if compilation.kind == "failure" or outcome is None:
        return "compile_failed"
    return outcome.kind
