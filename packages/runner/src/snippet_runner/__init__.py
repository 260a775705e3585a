from .compile import CompilationFailure, CompilationSuccess, PythonCompiler
from .core import Settings, load_settings
from .diagnostics import DiagnosticSink, LogEvent, Severity
from .execute import Completed, ExecutionEngine, Faulted, NoEntryPoint
from .pipeline import CodeRunner, RunnerSession, RunReport, build_runner
from .resources import ManifestResolver, ReferenceFetcher

__all__ = [
    "build_runner",
    "CodeRunner",
    "CompilationFailure",
    "CompilationSuccess",
    "Completed",
    "DiagnosticSink",
    "ExecutionEngine",
    "Faulted",
    "load_settings",
    "LogEvent",
    "ManifestResolver",
    "NoEntryPoint",
    "PythonCompiler",
    "ReferenceFetcher",
    "RunnerSession",
    "RunReport",
    "Settings",
    "Severity",
]
