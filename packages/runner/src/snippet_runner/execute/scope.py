from __future__ import annotations

import contextlib
import importlib.abc
import importlib.machinery
import sys
from types import ModuleType
from typing import Iterator, Sequence

from snippet_runner.compile.unit import UnitReference
from snippet_runner.diagnostics import DiagnosticSink, Severity, SinkWriter


class ReferenceImporter(importlib.abc.MetaPathFinder, importlib.abc.Loader):
    """
    Serve a unit's reference modules to `import` from their code objects.
    """

    def __init__(self, references: Sequence[UnitReference]) -> None:
        self._code = {}
        for r in references:
            self._code.setdefault(r.module_name, r.code)

    @property
    def module_names(self) -> tuple[str, ...]:
        return tuple(self._code)

    def find_spec(self, fullname, path=None, target=None):
        if fullname not in self._code:
            return None
        return importlib.machinery.ModuleSpec(fullname, self, origin="reference")

    def create_module(self, spec):
        return None

    def exec_module(self, module: ModuleType) -> None:
        exec(self._code[module.__name__], module.__dict__)


@contextlib.contextmanager
def reference_scope(references: Sequence[UnitReference]) -> Iterator[ReferenceImporter]:
    """
    Make reference modules importable for the duration of the block.

    Shadowed sys.modules entries are restored on exit and reference modules
    loaded inside the block are dropped.
    """
    importer = ReferenceImporter(references)
    names = importer.module_names
    saved = {n: sys.modules.pop(n) for n in names if n in sys.modules}
    sys.meta_path.insert(0, importer)
    try:
        yield importer
    finally:
        try:
            sys.meta_path.remove(importer)
        except ValueError:
            pass
        for n in names:
            sys.modules.pop(n, None)
        sys.modules.update(saved)


@contextlib.contextmanager
def capture_console(sink: DiagnosticSink) -> Iterator[None]:
    """
    Route stdout to the sink as Info lines and stderr as Error lines.
    """
    out = SinkWriter(sink, Severity.INFO, fallback=sys.stdout)
    err = SinkWriter(sink, Severity.ERROR, fallback=sys.stderr)
    try:
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            yield
    finally:
        out.flush()
        err.flush()
