from __future__ import annotations

import traceback
from types import ModuleType
from typing import Protocol

import structlog

from snippet_runner.compile.unit import EntryShape, InvalidUnit, UnitImage, load_unit
from snippet_runner.core.errors import RequestCancelled
from snippet_runner.core.provenance import Timer
from snippet_runner.diagnostics import DiagnosticSink, Severity

from .outcome import Completed, ExecutionOutcome, Faulted, NoEntryPoint
from .scope import capture_console, reference_scope

log = structlog.get_logger(__name__)


class CancellationSignal(Protocol):
    def is_set(self) -> bool: ...


class ExecutionEngine:
    """
    Load an emitted unit and invoke its entry routine.

    Every exception raised by the snippet (module body or entry routine),
    including BaseException subclasses other than KeyboardInterrupt, is caught
    here and turned into a Faulted outcome.
    """

    def __init__(self, sink: DiagnosticSink) -> None:
        self.sink = sink
        self.last_invoke_ms: int | None = None

    def execute(
        self,
        emitted: bytes,
        *,
        cancellation: CancellationSignal | None = None,
    ) -> ExecutionOutcome:
        self.last_invoke_ms = None
        try:
            image = load_unit(emitted)
        except InvalidUnit as e:
            self.sink.log(f"Unit could not be loaded: {e}", Severity.ERROR)
            return Faulted(message=str(e), outer_message=str(e), exc_type="InvalidUnit")
        self.sink.log(f"Unit loaded: {image.identity}", Severity.DEBUG)

        entry = image.entry
        if entry is None:
            self.sink.log("No entry point found in the unit.", Severity.ERROR)
            return NoEntryPoint()

        if cancellation is not None and cancellation.is_set():
            raise RequestCancelled("Request cancelled before invocation.")

        args: tuple[object, ...] = (
            ([],) if entry.shape is EntryShape.TEXT_SEQUENCE else ()
        )

        timer = Timer()
        with timer:
            outcome = self._invoke(image, entry.name, args)
        self.last_invoke_ms = timer.duration_ms
        self.sink.log(f"Invocation finished in {timer.duration_ms} ms.", Severity.DEBUG)
        log.info("execute.finished", unit=image.identity, outcome=outcome.kind)
        return outcome

    def _invoke(
        self, image: UnitImage, entry_name: str, args: tuple[object, ...]
    ) -> ExecutionOutcome:
        module = ModuleType(image.name)
        module.__file__ = f"<{image.name}>"
        try:
            with reference_scope(image.references), capture_console(self.sink):
                exec(image.code, module.__dict__)
                fn = module.__dict__.get(entry_name)
                if not callable(fn):
                    raise TypeError(f"Entry routine '{entry_name}' is not callable")
                fn(*args)
        except SystemExit as e:
            return self._exited(e)
        except KeyboardInterrupt:
            raise
        except BaseException as e:
            return self._faulted(e)
        return Completed()

    def _exited(self, e: SystemExit) -> ExecutionOutcome:
        code = e.code
        if code is None or code == 0:
            self.sink.log("Program exited with code 0.", Severity.DEBUG)
            return Completed()
        if isinstance(code, int):
            message = f"Process exited with code {code}"
        else:
            message = str(code)
        self.sink.log(f"Unhandled Exception: {message}", Severity.ERROR)
        return Faulted(message=message, outer_message=message, exc_type="SystemExit")

    def _faulted(self, e: BaseException) -> Faulted:
        cause = e.__cause__
        root = cause if cause is not None else e
        inner = _describe(cause) if cause is not None else None
        outer = _describe(e)
        message = inner if inner is not None else outer

        unsupported = next(
            (x for x in (root, e) if isinstance(x, NotImplementedError)), None
        )
        if unsupported is not None:
            self.sink.log(type(unsupported).__name__, Severity.ERROR)

        self.sink.log(f"Unhandled Exception: {message}", Severity.ERROR)
        self.sink.log(
            "".join(traceback.format_exception(type(e), e, e.__traceback__)).rstrip(),
            Severity.DEBUG,
        )
        return Faulted(
            message=message,
            outer_message=outer,
            inner_message=inner,
            exc_type=type(root).__name__,
        )


def _describe(e: BaseException) -> str:
    return str(e) or type(e).__name__
