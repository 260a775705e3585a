from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class FlightState(StrEnum):
    NOT_STARTED = "not_started"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    POISONED = "poisoned"


class SingleFlight(Generic[T]):
    """
    Run an async factory at most once and share its outcome forever.

    The first caller schedules the factory as a task; every caller, first or
    later, awaits that same task. A failure is cached like a value: later
    callers get the same exception and the factory is never re-run.
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._task: asyncio.Task[T] | None = None

    @property
    def state(self) -> FlightState:
        task = self._task
        if task is None:
            return FlightState.NOT_STARTED
        if not task.done():
            return FlightState.IN_FLIGHT
        if task.cancelled() or task.exception() is not None:
            return FlightState.POISONED
        return FlightState.DONE

    async def get(self) -> T:
        # No await between the check and the assignment: the slot transition
        # is atomic on the event loop.
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        # shield: a cancelled waiter must not cancel the shared task
        return await asyncio.shield(self._task)

    async def _run(self) -> T:
        return await self._factory()
