from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

import structlog

from snippet_runner.core.time import utc_now_iso

log = structlog.get_logger(__name__)


class Severity(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class LogEvent:
    seq: int
    message: str
    severity: Severity
    ts_utc: str


Observer = Callable[[LogEvent], None]


class DiagnosticSink:
    """
    Append-only, severity-leveled log shared by every pipeline stage.

    `log` never raises and never waits on observers: observers run on one
    background worker so delivery order matches append order.
    """

    def __init__(self, *, mirror: bool = True) -> None:
        self._lock = threading.Lock()
        self._events: list[LogEvent] = []
        self._observers: list[Observer] = []
        self._dispatcher: ThreadPoolExecutor | None = None
        self._mirror = mirror

    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        try:
            with self._lock:
                event = LogEvent(
                    seq=len(self._events),
                    message=str(message),
                    severity=Severity(severity),
                    ts_utc=utc_now_iso(),
                )
                self._events.append(event)
                observers = tuple(self._observers)
                if observers:
                    self._dispatch(event, observers)

            if self._mirror:
                _mirror(event)
        except Exception:
            log.exception("sink.log_failed")

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """
        Register an observer; returns a callable that removes it again.
        """
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def events(self) -> tuple[LogEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def count(self, severity: Severity) -> int:
        with self._lock:
            return sum(1 for e in self._events if e.severity == severity)

    def close(self) -> None:
        """Drain pending observer callbacks and stop the dispatcher."""
        with self._lock:
            dispatcher, self._dispatcher = self._dispatcher, None
        if dispatcher is not None:
            dispatcher.shutdown(wait=True)

    # Called with self._lock held, so submission order is append order.
    def _dispatch(self, event: LogEvent, observers: tuple[Observer, ...]) -> None:
        if self._dispatcher is None:
            self._dispatcher = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="sink-observer"
            )
        for observer in observers:
            self._dispatcher.submit(_notify, observer, event)


def _notify(observer: Observer, event: LogEvent) -> None:
    try:
        observer(event)
    except Exception:
        log.exception("sink.observer_failed", seq=event.seq)


def _mirror(event: LogEvent) -> None:
    fields = {"seq": event.seq, "sink_severity": event.severity.value}
    if event.severity is Severity.ERROR:
        log.error(event.message, **fields)
    elif event.severity is Severity.WARNING:
        log.warning(event.message, **fields)
    elif event.severity is Severity.INFO:
        log.info(event.message, **fields)
    else:
        log.debug(event.message, **fields)
