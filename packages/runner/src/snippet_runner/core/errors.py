from __future__ import annotations

import traceback
from dataclasses import dataclass


class RunnerError(RuntimeError):
    """Base error"""


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """
    A normalized error record for request failures.
    """

    exc_type: str
    message: str
    traceback: str


def error_record_from_exc(exc: BaseException) -> ErrorRecord:
    return ErrorRecord(
        exc_type=type(exc).__name__,
        message=str(exc),
        traceback="".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ),
    )


class ResolutionError(RunnerError):
    """A logical reference name could not be turned into a delivery name"""


class InvalidArgument(ResolutionError, ValueError):
    """Blank or whitespace-only logical name"""


class ResourceNotFound(ResolutionError):
    """Logical name is absent from the boot manifest"""

    def __init__(self, logical_name: str) -> None:
        super().__init__(f"Resource '{logical_name}' not found in boot manifest.")
        self.logical_name = logical_name


class InvalidManifest(ResolutionError):
    """
    Non-retryable: the boot manifest is present but structurally invalid.
    Poisons the resolver cache for the rest of the process.
    """


class NetworkFailed(RunnerError):
    """Transport failure or unexpected HTTP status. Never retried."""


class ConversionFailed(RunnerError):
    """Wire-format bytes could not be converted into a loadable module"""


class RequestCancelled(RunnerError):
    """The request was cancelled before the entry routine was invoked"""
