from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class Completed:
    kind: Literal["completed"] = "completed"


@dataclass(frozen=True, slots=True)
class NoEntryPoint:
    kind: Literal["no_entry_point"] = "no_entry_point"


@dataclass(frozen=True, slots=True)
class Faulted:
    """
    `message` is what gets logged: the inner (cause) message when the fault
    wraps another one, otherwise the fault's own message.
    """

    message: str
    outer_message: str
    inner_message: str | None = None
    exc_type: str | None = None
    kind: Literal["faulted"] = "faulted"


ExecutionOutcome = Completed | NoEntryPoint | Faulted
