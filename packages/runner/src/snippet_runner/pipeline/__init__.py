from .report import RunReport, status_for
from .runner import CodeRunner, RunnerSession, build_runner

__all__ = ["CodeRunner", "RunnerSession", "RunReport", "build_runner", "status_for"]
