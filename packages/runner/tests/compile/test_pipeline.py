from __future__ import annotations

import marshal
from dataclasses import dataclass
from typing import Sequence

import pytest

from snippet_runner.compile import (
    CompilationFailure,
    CompilationPipeline,
    CompilationSuccess,
    load_unit,
)
from snippet_runner.core.errors import ResourceNotFound
from snippet_runner.diagnostics import DiagnosticSink, Severity


@dataclass(frozen=True)
class Ref:
    module_name: str
    payload: bytes


class StubReferences:
    def __init__(self, modules: dict[str, str]) -> None:
        self.modules = modules
        self.calls: list[tuple[list[str], int]] = []

    async def fetch_all(
        self, logical_names: Sequence[str], *, concurrency: int = 4
    ) -> list[Ref]:
        self.calls.append((list(logical_names), concurrency))
        out = []
        for name in logical_names:
            if name not in self.modules:
                raise ResourceNotFound(name)
            module = name.removesuffix(".wmod")
            code = compile(self.modules[name], module, "exec")
            out.append(Ref(module, marshal.dumps(code)))
        return out


def _messages(sink: DiagnosticSink) -> list[tuple[Severity, str]]:
    return [(e.severity, e.message) for e in sink.events()]


@pytest.mark.asyncio
async def test_success_logs_phases_in_order() -> None:
    sink = DiagnosticSink(mirror=False)
    refs = StubReferences({"textfmt.wmod": "def shout(s):\n    return s.upper()\n"})
    pipeline = CompilationPipeline(sink=sink, references=refs, fetch_concurrency=2)

    result = await pipeline.compile(
        "import textfmt\n\ndef main():\n    print(textfmt.shout('x'))\n",
        ["textfmt.wmod"],
    )

    assert isinstance(result, CompilationSuccess)
    assert result.diagnostics == ()
    unit = load_unit(result.emitted)
    assert [r.module_name for r in unit.references] == ["textfmt"]
    assert refs.calls == [(["textfmt.wmod"], 2)]

    messages = [m for _, m in _messages(sink)]
    prefixes = ["Parsed syntax tree", "Fetched 1 reference(s)", "Compilation completed", "Emit completed"]
    assert [next(i for i, m in enumerate(messages) if m.startswith(p)) for p in prefixes] == [0, 1, 2, 3]
    assert all(sev is Severity.DEBUG for sev, _ in _messages(sink))

    t = pipeline.timings
    assert None not in (t.parse_ms, t.fetch_ms, t.compile_ms, t.emit_ms)
    assert t.invoke_ms is None


@pytest.mark.asyncio
async def test_failure_logs_diagnostics_and_emit_errors() -> None:
    sink = DiagnosticSink(mirror=False)
    pipeline = CompilationPipeline(sink=sink, references=StubReferences({}))

    result = await pipeline.compile("import nowhere\n\ndef main():\n    pass\n", [])

    assert isinstance(result, CompilationFailure)
    assert [d.code for d in result.diagnostics] == ["PY0002", "PY0002"]

    errors = [m for sev, m in _messages(sink) if sev is Severity.ERROR]
    assert len(errors) == 2
    assert all("PY0002" in m and "nowhere" in m for m in errors)
    # the compile diagnostics come before the emit ones
    messages = [m for _, m in _messages(sink)]
    emit_at = next(i for i, m in enumerate(messages) if m.startswith("Emit completed"))
    assert messages.index(errors[0]) < emit_at < len(messages) - 1


@pytest.mark.asyncio
async def test_warnings_are_logged_but_do_not_fail() -> None:
    sink = DiagnosticSink(mirror=False)
    pipeline = CompilationPipeline(sink=sink, references=StubReferences({}))

    result = await pipeline.compile("print('no main here')\n", [])

    assert isinstance(result, CompilationSuccess)
    assert [d.code for d in result.diagnostics] == ["PY0005"]
    assert sink.count(Severity.WARNING) == 1
    assert sink.count(Severity.ERROR) == 0


@pytest.mark.asyncio
async def test_hidden_diagnostic_is_logged_as_info() -> None:
    sink = DiagnosticSink(mirror=False)
    pipeline = CompilationPipeline(sink=sink, references=StubReferences({}))

    result = await pipeline.compile("def main(a, b):\n    pass\n", [])

    assert isinstance(result, CompilationSuccess)
    infos = [m for sev, m in _messages(sink) if sev is Severity.INFO]
    assert len(infos) == 1 and "PY0006" in infos[0]


@pytest.mark.asyncio
async def test_reference_errors_propagate() -> None:
    sink = DiagnosticSink(mirror=False)
    pipeline = CompilationPipeline(sink=sink, references=StubReferences({}))

    with pytest.raises(ResourceNotFound):
        await pipeline.compile("def main():\n    pass\n", ["missing.wmod"])

    messages = [m for _, m in _messages(sink)]
    assert messages[0].startswith("Parsed syntax tree")
    assert not any(m.startswith("Compilation completed") for m in messages)
