from .engine import CancellationSignal, ExecutionEngine
from .outcome import Completed, ExecutionOutcome, Faulted, NoEntryPoint
from .scope import ReferenceImporter, capture_console, reference_scope

__all__ = [
    "CancellationSignal",
    "capture_console",
    "Completed",
    "ExecutionEngine",
    "ExecutionOutcome",
    "Faulted",
    "NoEntryPoint",
    "ReferenceImporter",
    "reference_scope",
]
