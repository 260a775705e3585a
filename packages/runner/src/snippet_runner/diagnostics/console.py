from __future__ import annotations

import io
import threading
from typing import TextIO

from .sink import DiagnosticSink, Severity


class SinkWriter(io.TextIOBase):
    """
    Text stream that forwards complete lines into a DiagnosticSink.

    Used to capture a snippet's stdout/stderr; partial lines are held until a
    newline arrives or the writer is flushed. Writes made while a line is
    being forwarded (a log handler echoing the sink event to the redirected
    stream) go to `fallback` instead of looping back into the sink.
    """

    def __init__(
        self,
        sink: DiagnosticSink,
        severity: Severity,
        *,
        fallback: TextIO | None = None,
    ) -> None:
        super().__init__()
        self._sink = sink
        self._severity = severity
        self._fallback = fallback
        self._buf = ""
        self._local = threading.local()

    def writable(self) -> bool:
        return True

    def write(self, s: str) -> int:
        if not isinstance(s, str):
            raise TypeError(f"write() argument must be str, not {type(s).__name__}")
        if getattr(self._local, "forwarding", False):
            if self._fallback is not None:
                self._fallback.write(s)
            return len(s)
        self._buf += s
        while "\n" in self._buf:
            line, self._buf = self._buf.split("\n", 1)
            self._forward(line)
        return len(s)

    def flush(self) -> None:
        if getattr(self._local, "forwarding", False):
            return
        if self._buf:
            line, self._buf = self._buf, ""
            self._forward(line)

    def _forward(self, line: str) -> None:
        self._local.forwarding = True
        try:
            self._sink.log(line, self._severity)
        finally:
            self._local.forwarding = False
