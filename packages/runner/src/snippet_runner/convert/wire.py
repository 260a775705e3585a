"""
WMOD wire container for reference modules.

Layout (little-endian):

    magic    4 bytes   b"WMOD"
    version  u16       1
    flags    u16       bit 0: payload is zlib-compressed
    name_len u16
    name     name_len bytes, UTF-8 module name
    payload  rest of body, UTF-8 Python source (compressed if flagged)
"""

from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass
from typing import Final

from snippet_runner.core.errors import ConversionFailed

MAGIC: Final[bytes] = b"WMOD"
VERSION: Final[int] = 1
FLAG_ZLIB: Final[int] = 0x1

_HEADER = struct.Struct("<4sHHH")
HEADER_SIZE: Final[int] = _HEADER.size

MAX_SOURCE_BYTES: Final[int] = 16 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class WireHeader:
    version: int
    flags: int
    module_name: str

    @property
    def compressed(self) -> bool:
        return bool(self.flags & FLAG_ZLIB)

    @property
    def size(self) -> int:
        return HEADER_SIZE + len(self.module_name.encode("utf-8"))


def encode_wire_module(name: str, source: str, *, compress: bool = True) -> bytes:
    name_b = name.encode("utf-8")
    if not name_b or len(name_b) > 0xFFFF:
        raise ValueError(f"Invalid module name length: {len(name_b)}")
    payload = source.encode("utf-8")
    flags = 0
    if compress:
        payload = zlib.compress(payload, level=9)
        flags |= FLAG_ZLIB
    return _HEADER.pack(MAGIC, VERSION, flags, len(name_b)) + name_b + payload


def parse_header(buf: bytes | bytearray) -> WireHeader | None:
    """
    Parse the header from the start of `buf`.

    Returns None while `buf` is still too short to hold the full header.
    """
    if len(buf) < HEADER_SIZE:
        return None
    magic, version, flags, name_len = _HEADER.unpack_from(buf, 0)
    if magic != MAGIC:
        raise ConversionFailed(f"Not a WMOD module (magic={bytes(magic)!r})")
    if version != VERSION:
        raise ConversionFailed(f"Unsupported WMOD version: {version}")
    if flags & ~FLAG_ZLIB:
        raise ConversionFailed(f"Unknown WMOD flags: {flags:#06x}")
    if name_len == 0:
        raise ConversionFailed("WMOD module name is empty")
    end = HEADER_SIZE + name_len
    if len(buf) < end:
        return None
    try:
        name = bytes(buf[HEADER_SIZE:end]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConversionFailed(f"WMOD module name is not UTF-8: {e}") from e
    if not name.isidentifier():
        raise ConversionFailed(f"WMOD module name is not an identifier: {name!r}")
    return WireHeader(version=version, flags=flags, module_name=name)


class PayloadDecoder:
    """
    Incremental payload decoder; feed body chunks, then call finish().
    """

    def __init__(self, header: WireHeader, *, limit: int = MAX_SOURCE_BYTES) -> None:
        self.header = header
        self._limit = limit
        self._out = bytearray()
        self._z = zlib.decompressobj() if header.compressed else None

    def feed(self, chunk: bytes) -> None:
        if not chunk:
            return
        if self._z is None:
            self._append(chunk)
            return
        try:
            # cap output per call so a tiny compressed body can't balloon
            data = self._z.decompress(chunk, self._limit + 1 - len(self._out))
        except zlib.error as e:
            raise ConversionFailed(f"Corrupt WMOD payload: {e}") from e
        self._append(data)
        if self._z.unconsumed_tail:
            raise ConversionFailed(
                f"WMOD payload exceeds {self._limit} bytes when decompressed"
            )

    def finish(self) -> str:
        if self._z is not None:
            try:
                self._append(self._z.flush())
            except zlib.error as e:
                raise ConversionFailed(f"Corrupt WMOD payload: {e}") from e
            if not self._z.eof:
                raise ConversionFailed("Truncated WMOD payload")
        try:
            return self._out.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConversionFailed(f"WMOD payload is not UTF-8 text: {e}") from e

    def _append(self, data: bytes) -> None:
        self._out.extend(data)
        if len(self._out) > self._limit:
            raise ConversionFailed(
                f"WMOD payload exceeds {self._limit} bytes when decompressed"
            )
