from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Literal, Protocol, Sequence

import structlog

from snippet_runner.core.provenance import Timer
from snippet_runner.diagnostics import DiagnosticSink, Severity

from .compiler import Compiler, PythonCompiler, ReferenceLike
from .diagnostics import CompilerDiagnostic, map_severity
from .options import SNIPPET_OPTIONS, CompilationOptions

log = structlog.get_logger(__name__)


class ReferenceSource(Protocol):
    async def fetch_all(
        self, logical_names: Sequence[str], *, concurrency: int = 4
    ) -> Sequence[ReferenceLike]: ...


@dataclass(frozen=True, slots=True)
class CompilationSuccess:
    emitted: bytes
    diagnostics: tuple[CompilerDiagnostic, ...] = ()
    kind: Literal["success"] = "success"


@dataclass(frozen=True, slots=True)
class CompilationFailure:
    diagnostics: tuple[CompilerDiagnostic, ...] = ()
    kind: Literal["failure"] = "failure"


CompilationResult = CompilationSuccess | CompilationFailure


@dataclass(slots=True)
class PhaseTimings:
    parse_ms: int | None = None
    fetch_ms: int | None = None
    compile_ms: int | None = None
    emit_ms: int | None = None
    invoke_ms: int | None = None

    def to_dict(self) -> dict[str, int | None]:
        return {
            "parse_ms": self.parse_ms,
            "fetch_ms": self.fetch_ms,
            "compile_ms": self.compile_ms,
            "emit_ms": self.emit_ms,
            "invoke_ms": self.invoke_ms,
        }


@dataclass(slots=True)
class CompilationPipeline:
    """
    parse -> fetch references -> compile -> log diagnostics -> emit.

    Compiler diagnostics are logged and never raised; resolution, network and
    conversion errors from the reference source propagate to the caller.
    """

    sink: DiagnosticSink
    references: ReferenceSource
    compiler: Compiler = field(default_factory=PythonCompiler)
    options: CompilationOptions = SNIPPET_OPTIONS
    fetch_concurrency: int = 4
    timings: PhaseTimings = field(default_factory=PhaseTimings)

    async def compile(
        self, source_text: str, reference_names: Sequence[str]
    ) -> CompilationResult:
        self.timings = PhaseTimings()

        with Timer() as t:
            unit = self.compiler.parse(source_text)
        self.timings.parse_ms = t.duration_ms
        self.sink.log(f"Parsed syntax tree in {t.duration_ms} ms.", Severity.DEBUG)

        with Timer() as t:
            refs = await self.references.fetch_all(
                list(reference_names), concurrency=self.fetch_concurrency
            )
        self.timings.fetch_ms = t.duration_ms
        self.sink.log(
            f"Fetched {len(refs)} reference(s) in {t.duration_ms} ms.", Severity.DEBUG
        )

        with Timer() as t:
            compilation = self.compiler.compile(unit, refs, self.options)
        self.timings.compile_ms = t.duration_ms
        self.sink.log(f"Compilation completed in {t.duration_ms} ms.", Severity.DEBUG)

        diagnostics = compilation.get_diagnostics()
        self._log_diagnostics(diagnostics)

        with Timer() as t:
            result = await asyncio.to_thread(self.compiler.emit, compilation)
        self.timings.emit_ms = t.duration_ms
        self.sink.log(f"Emit completed in {t.duration_ms} ms.", Severity.DEBUG)

        if not result.success or result.data is None:
            self._log_diagnostics(result.diagnostics)
            if not any(d.is_error for d in result.diagnostics):
                self.sink.log("Emit failed without diagnostics.", Severity.ERROR)
            log.info(
                "compile.failed",
                diagnostics=len(diagnostics),
                emit_diagnostics=len(result.diagnostics),
            )
            return CompilationFailure(diagnostics=diagnostics + result.diagnostics)

        log.info("compile.emitted", bytes=len(result.data), diagnostics=len(diagnostics))
        return CompilationSuccess(emitted=result.data, diagnostics=diagnostics)

    def _log_diagnostics(self, diagnostics: Sequence[CompilerDiagnostic]) -> None:
        for d in diagnostics:
            self.sink.log(d.format(), map_severity(d.severity))
