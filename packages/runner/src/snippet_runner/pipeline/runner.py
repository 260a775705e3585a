from __future__ import annotations

import asyncio
from contextlib import AbstractAsyncContextManager
from typing import Sequence

import httpx
import structlog

from snippet_runner.compile import (
    CompilationOptions,
    CompilationPipeline,
    Compiler,
    PythonCompiler,
)
from snippet_runner.convert import FormatConverter
from snippet_runner.core import (
    ConversionFailed,
    NetworkFailed,
    RequestCancelled,
    ResolutionError,
    Settings,
    format_duration_ms,
    monotonic_ms,
    new_run_id,
    utc_now_iso,
)
from snippet_runner.diagnostics import DiagnosticSink, Severity
from snippet_runner.execute import CancellationSignal, ExecutionEngine
from snippet_runner.resources import (
    ManifestResolver,
    ReferenceFetcher,
    make_http_client,
)

from .report import RunReport, status_for

log = structlog.get_logger(__name__)

_REQUEST_ERRORS = (ResolutionError, NetworkFailed, ConversionFailed)


class CodeRunner:
    """
    Compile and execute one snippet per call.

    Callers serialize submissions; the resolver (and its cached manifest) is
    shared across calls for the lifetime of the runner.
    """

    def __init__(
        self,
        *,
        sink: DiagnosticSink,
        pipeline: CompilationPipeline,
        engine: ExecutionEngine,
        references: Sequence[str] = (),
    ) -> None:
        self.sink = sink
        self.pipeline = pipeline
        self.engine = engine
        self.references = tuple(references)

    async def run(
        self,
        source_text: str,
        *,
        references: Sequence[str] | None = None,
        cancellation: CancellationSignal | None = None,
        run_id: str | None = None,
    ) -> RunReport:
        rid = run_id or new_run_id()
        names = tuple(references) if references is not None else self.references
        started_at = utc_now_iso()
        t0 = monotonic_ms()
        errors_before = self.sink.count(Severity.ERROR)

        log.info("run.start", run_id=rid, references=list(names))

        try:
            _check_cancelled(cancellation)
            compilation = await self.pipeline.compile(source_text, names)
            outcome = None
            if compilation.kind == "success":
                outcome = self.engine.execute(
                    compilation.emitted, cancellation=cancellation
                )
        except RequestCancelled as e:
            self.sink.log(str(e), Severity.WARNING)
            log.warning("run.cancelled", run_id=rid)
            raise
        except asyncio.CancelledError:
            self.sink.log("Request cancelled.", Severity.WARNING)
            raise
        except _REQUEST_ERRORS as e:
            self.sink.log(f"Request failed: {e}", Severity.ERROR)
            log.error("run.failed", run_id=rid, exc_type=type(e).__name__, error=str(e))
            raise
        except Exception as e:
            self.sink.log(f"Internal error: {e!r}", Severity.ERROR)
            log.exception("run.internal_error", run_id=rid)
            raise

        timings = self.pipeline.timings.to_dict()
        if outcome is not None:
            timings["invoke_ms"] = self.engine.last_invoke_ms
        duration = monotonic_ms() - t0

        report = RunReport(
            run_id=rid,
            started_at_utc=started_at,
            finished_at_utc=utc_now_iso(),
            status=status_for(compilation, outcome),
            duration_ms=duration,
            compilation=compilation,
            outcome=outcome,
            timings=timings,
            error_events=self.sink.count(Severity.ERROR) - errors_before,
        )
        log.info(
            "run.finish",
            run_id=rid,
            status=report.status,
            duration_ms=duration,
            duration=format_duration_ms(duration),
        )
        return report


def _check_cancelled(cancellation: CancellationSignal | None) -> None:
    if cancellation is not None and cancellation.is_set():
        raise RequestCancelled("Request cancelled before invocation.")


class RunnerSession(AbstractAsyncContextManager["RunnerSession"]):
    """
    Owns the HTTP client and the wiring for a CodeRunner built from Settings.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        sink: DiagnosticSink | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        compiler: Compiler | None = None,
        converter: FormatConverter | None = None,
        options: CompilationOptions | None = None,
    ) -> None:
        self.settings = settings
        self.sink = sink or DiagnosticSink()
        self.client = make_http_client(
            base_url=settings.resolved_base_url(),
            timeout=settings.http_timeout_s,
            transport=transport,
        )
        self.resolver = ManifestResolver(
            self.client,
            framework_path=settings.framework_path,
            manifest_file=settings.manifest_file,
        )
        self.fetcher = ReferenceFetcher(
            self.client,
            self.resolver,
            converter=converter,
            framework_path=settings.framework_path,
        )
        self.runner = CodeRunner(
            sink=self.sink,
            pipeline=CompilationPipeline(
                sink=self.sink,
                references=self.fetcher,
                compiler=compiler or PythonCompiler(),
                options=options
                or CompilationOptions(unit_name=settings.unit_name),
                fetch_concurrency=settings.fetch_concurrency,
            ),
            engine=ExecutionEngine(self.sink),
            references=settings.references,
        )

    async def __aenter__(self) -> "RunnerSession":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()
        self.sink.close()


def build_runner(
    settings: Settings,
    *,
    sink: DiagnosticSink | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunnerSession:
    return RunnerSession(settings, sink=sink, transport=transport)
