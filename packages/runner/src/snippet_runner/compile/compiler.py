from __future__ import annotations

import ast
import sys
import warnings
from dataclasses import dataclass, field
from types import CodeType
from typing import Protocol, Sequence

from .diagnostics import CompilerDiagnostic, DiagnosticSeverity
from .options import CompilationOptions, OutputKind
from .unit import EntryPoint, EntryShape, serialize_unit

UNSAFE_MODULES: frozenset[str] = frozenset({"ctypes", "_ctypes", "mmap"})

# Annotations accepted as "a sequence of text" for the entry parameter.
_TEXT_SEQUENCE_ANNOTATIONS: frozenset[str] = frozenset(
    f"{prefix}{name}[str]"
    for prefix in ("", "typing.", "collections.abc.")
    for name in ("Sequence", "Iterable", "Collection")
) | frozenset(
    {
        "list[str]",
        "List[str]",
        "typing.List[str]",
        "tuple[str,...]",
        "Tuple[str,...]",
        "typing.Tuple[str,...]",
    }
)


class ReferenceLike(Protocol):
    module_name: str
    payload: bytes


@dataclass(frozen=True, slots=True)
class SourceUnit:
    """Parsed snippet; `tree` is None when parsing failed."""

    text: str
    path: str
    tree: ast.Module | None
    diagnostics: tuple[CompilerDiagnostic, ...] = ()


@dataclass(slots=True)
class Compilation:
    source: SourceUnit
    references: tuple[ReferenceLike, ...]
    options: CompilationOptions
    diagnostics: list[CompilerDiagnostic] = field(default_factory=list)
    code: CodeType | None = None
    entry: EntryPoint | None = None

    def get_diagnostics(self) -> tuple[CompilerDiagnostic, ...]:
        return tuple(self.diagnostics)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


@dataclass(frozen=True, slots=True)
class EmitResult:
    success: bool
    data: bytes | None
    diagnostics: tuple[CompilerDiagnostic, ...] = ()


class Compiler(Protocol):
    def parse(self, text: str, *, path: str = "<snippet>") -> SourceUnit: ...

    def compile(
        self,
        source: SourceUnit,
        references: Sequence[ReferenceLike],
        options: CompilationOptions,
    ) -> Compilation: ...

    def emit(self, compilation: Compilation) -> EmitResult: ...


class PythonCompiler:
    """
    Compiler capability backed by the host interpreter's `ast` and `compile`.
    """

    def __init__(self, *, available_modules: frozenset[str] | None = None) -> None:
        self.available_modules = (
            available_modules
            if available_modules is not None
            else frozenset(sys.stdlib_module_names)
            | frozenset(sys.builtin_module_names)
            | {"__future__"}
        )

    def parse(self, text: str, *, path: str = "<snippet>") -> SourceUnit:
        diags: list[CompilerDiagnostic] = []
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                tree = ast.parse(text, filename=path, type_comments=False)
            except SyntaxError as e:
                tree = None
                diags.append(_syntax_diagnostic(e))
            except ValueError as e:
                # source containing NUL bytes
                tree = None
                diags.append(
                    CompilerDiagnostic(str(e), DiagnosticSeverity.ERROR, "PY0001")
                )
        diags.extend(_warning_diagnostic(w) for w in caught)
        return SourceUnit(text=text, path=path, tree=tree, diagnostics=tuple(diags))

    def compile(
        self,
        source: SourceUnit,
        references: Sequence[ReferenceLike],
        options: CompilationOptions,
    ) -> Compilation:
        comp = Compilation(
            source=source, references=tuple(references), options=options
        )
        comp.diagnostics.extend(source.diagnostics)
        if source.tree is None:
            return comp

        ref_names = self._check_references(comp)
        self._check_imports(comp, source.tree, ref_names)

        if options.output_kind is OutputKind.EXECUTABLE:
            comp.entry = self._find_entry(comp, source.tree)

        with warnings.catch_warnings(record=True) as caught:
            if options.report_suppressed_diagnostics:
                warnings.simplefilter("always")
            try:
                comp.code = compile(
                    source.tree, source.path, "exec", dont_inherit=True, optimize=0
                )
            except SyntaxError as e:
                comp.diagnostics.append(_syntax_diagnostic(e))
        comp.diagnostics.extend(_warning_diagnostic(w) for w in caught)
        return comp

    def emit(self, compilation: Compilation) -> EmitResult:
        errors = tuple(d for d in compilation.diagnostics if d.is_error)
        if errors or compilation.code is None:
            return EmitResult(success=False, data=None, diagnostics=errors)

        seen: set[str] = set()
        refs: list[tuple[str, bytes]] = []
        for r in compilation.references:
            if r.module_name not in seen:
                seen.add(r.module_name)
                refs.append((r.module_name, r.payload))

        try:
            data = serialize_unit(
                name=compilation.options.unit_name,
                code=compilation.code,
                entry=compilation.entry,
                references=refs,
            )
        except ValueError as e:
            diag = CompilerDiagnostic(
                f"Emission failed: {e}", DiagnosticSeverity.ERROR, "PY0008"
            )
            return EmitResult(success=False, data=None, diagnostics=(diag,))
        return EmitResult(success=True, data=data)

    def _check_references(self, comp: Compilation) -> set[str]:
        names: set[str] = set()
        for r in comp.references:
            if r.module_name in names:
                comp.diagnostics.append(
                    CompilerDiagnostic(
                        f"Duplicate reference module '{r.module_name}'; "
                        "the first one is used.",
                        DiagnosticSeverity.WARNING,
                        "PY0009",
                    )
                )
            names.add(r.module_name)
        return names

    def _check_imports(
        self, comp: Compilation, tree: ast.Module, ref_names: set[str]
    ) -> None:
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules = [a.name for a in node.names]
            elif isinstance(node, ast.ImportFrom):
                if node.level:
                    comp.diagnostics.append(
                        _at(
                            node,
                            "Relative imports are not supported in a snippet.",
                            DiagnosticSeverity.ERROR,
                            "PY0007",
                        )
                    )
                    continue
                modules = [node.module or ""]
            else:
                continue

            for mod in modules:
                top = mod.split(".", 1)[0]
                if top in UNSAFE_MODULES and not comp.options.allow_unsafe:
                    comp.diagnostics.append(
                        _at(
                            node,
                            f"Unsafe module '{top}' may only be imported when "
                            "compiling with allow_unsafe.",
                            DiagnosticSeverity.ERROR,
                            "PY0003",
                        )
                    )
                elif top not in ref_names and top not in self.available_modules:
                    comp.diagnostics.append(
                        _at(
                            node,
                            f"The module '{top}' could not be found "
                            "(are you missing a reference?)",
                            DiagnosticSeverity.ERROR,
                            "PY0002",
                        )
                    )

    def _find_entry(self, comp: Compilation, tree: ast.Module) -> EntryPoint | None:
        name = comp.options.entry_name
        fn: ast.FunctionDef | ast.AsyncFunctionDef | None = None
        for node in tree.body:
            if (
                isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
                and node.name == name
            ):
                fn = node

        if fn is None or isinstance(fn, ast.AsyncFunctionDef):
            detail = "is async" if fn is not None else "is not defined"
            comp.diagnostics.append(
                _at(
                    fn or tree,
                    f"Program has no entry routine: top-level function "
                    f"'{name}' {detail}.",
                    DiagnosticSeverity.WARNING,
                    "PY0005",
                )
            )
            return None

        shape = entry_shape(fn.args)
        if shape is EntryShape.NONE and _has_required_params(fn.args):
            if comp.options.report_suppressed_diagnostics:
                comp.diagnostics.append(
                    _at(
                        fn,
                        f"Entry routine '{name}' has an unsupported signature; "
                        "it will be invoked without arguments.",
                        DiagnosticSeverity.HIDDEN,
                        "PY0006",
                    )
                )
        return EntryPoint(name=name, shape=shape)


def entry_shape(args: ast.arguments) -> EntryShape:
    """
    TEXT_SEQUENCE when the routine declares exactly one positional parameter
    annotated as a sequence of str; NONE otherwise.
    """
    params = [*args.posonlyargs, *args.args]
    if args.vararg or args.kwarg or args.kwonlyargs or len(params) != 1:
        return EntryShape.NONE
    ann = params[0].annotation
    if ann is None:
        return EntryShape.NONE
    if isinstance(ann, ast.Constant) and isinstance(ann.value, str):
        text = ann.value
    else:
        text = ast.unparse(ann)
    if "".join(text.split()) in _TEXT_SEQUENCE_ANNOTATIONS:
        return EntryShape.TEXT_SEQUENCE
    return EntryShape.NONE


def _has_required_params(args: ast.arguments) -> bool:
    positional = [*args.posonlyargs, *args.args]
    if len(args.defaults) < len(positional):
        return True
    return any(d is None for d in args.kw_defaults)


def _at(
    node: ast.AST, message: str, severity: DiagnosticSeverity, code: str
) -> CompilerDiagnostic:
    line = getattr(node, "lineno", None)
    col = getattr(node, "col_offset", None)
    return CompilerDiagnostic(
        message,
        severity,
        code,
        line=line,
        column=(col + 1) if col is not None else None,
    )


def _syntax_diagnostic(e: SyntaxError) -> CompilerDiagnostic:
    return CompilerDiagnostic(
        e.msg or str(e),
        DiagnosticSeverity.ERROR,
        "PY0001",
        line=e.lineno,
        column=e.offset,
    )


def _warning_diagnostic(w: warnings.WarningMessage) -> CompilerDiagnostic:
    return CompilerDiagnostic(
        f"{w.category.__name__}: {w.message}",
        DiagnosticSeverity.WARNING,
        "PY0004",
        line=w.lineno,
    )
