from .console import SinkWriter
from .sink import DiagnosticSink, LogEvent, Observer, Severity

__all__ = ["DiagnosticSink", "LogEvent", "Observer", "Severity", "SinkWriter"]
