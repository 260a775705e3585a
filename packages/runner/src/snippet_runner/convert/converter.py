from __future__ import annotations

import marshal
from dataclasses import dataclass
from typing import AsyncIterable, Protocol

import structlog

from snippet_runner.core.errors import ConversionFailed

from .wire import MAX_SOURCE_BYTES, PayloadDecoder, parse_header

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ConvertedModule:
    module_name: str
    payload: bytes


class FormatConverter(Protocol):
    async def convert(self, chunks: AsyncIterable[bytes]) -> ConvertedModule: ...


class WireFormatConverter:
    """
    Convert a streamed WMOD module into marshalled code the compiler can load.
    """

    def __init__(self, *, max_source_bytes: int = MAX_SOURCE_BYTES) -> None:
        self.max_source_bytes = max_source_bytes

    async def convert(self, chunks: AsyncIterable[bytes]) -> ConvertedModule:
        head = bytearray()
        decoder: PayloadDecoder | None = None

        async for chunk in chunks:
            if decoder is not None:
                decoder.feed(chunk)
                continue
            head.extend(chunk)
            header = parse_header(head)
            if header is None:
                continue
            decoder = PayloadDecoder(header, limit=self.max_source_bytes)
            decoder.feed(bytes(head[header.size :]))
            head.clear()

        if decoder is None:
            # parse_header raises on bad magic; reaching here means too short
            parse_header(bytes(head))
            raise ConversionFailed(f"Truncated WMOD header ({len(head)} bytes)")

        source = decoder.finish()
        return ConvertedModule(
            module_name=decoder.header.module_name,
            payload=compile_reference(decoder.header.module_name, source),
        )


def compile_reference(module_name: str, source: str) -> bytes:
    try:
        code = compile(source, f"<reference {module_name}>", "exec", dont_inherit=True)
    except (SyntaxError, ValueError) as e:
        raise ConversionFailed(f"Reference module {module_name!r} does not compile: {e}") from e
    log.debug("reference.converted", module=module_name, source_bytes=len(source))
    return marshal.dumps(code)
