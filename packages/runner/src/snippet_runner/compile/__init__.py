from .compiler import (
    Compilation,
    Compiler,
    EmitResult,
    PythonCompiler,
    SourceUnit,
    entry_shape,
)
from .diagnostics import (
    SEVERITY_MAP,
    CompilerDiagnostic,
    DiagnosticSeverity,
    map_severity,
)
from .options import SNIPPET_OPTIONS, CompilationOptions, OutputKind
from .pipeline import (
    CompilationFailure,
    CompilationPipeline,
    CompilationResult,
    CompilationSuccess,
    PhaseTimings,
)
from .unit import (
    EntryPoint,
    EntryShape,
    InvalidUnit,
    UnitImage,
    UnitReference,
    load_unit,
    serialize_unit,
)

__all__ = [
    "Compilation",
    "CompilationFailure",
    "CompilationOptions",
    "CompilationPipeline",
    "CompilationResult",
    "CompilationSuccess",
    "Compiler",
    "CompilerDiagnostic",
    "DiagnosticSeverity",
    "EmitResult",
    "entry_shape",
    "EntryPoint",
    "EntryShape",
    "InvalidUnit",
    "load_unit",
    "map_severity",
    "OutputKind",
    "PhaseTimings",
    "PythonCompiler",
    "serialize_unit",
    "SEVERITY_MAP",
    "SNIPPET_OPTIONS",
    "SourceUnit",
    "UnitImage",
    "UnitReference",
]
