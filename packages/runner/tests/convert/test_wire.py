from __future__ import annotations

import marshal
import struct
import zlib
from typing import AsyncIterator

import pytest

from snippet_runner.convert import (
    FLAG_ZLIB,
    MAGIC,
    WireFormatConverter,
    encode_wire_module,
    parse_header,
)
from snippet_runner.convert.wire import HEADER_SIZE
from snippet_runner.core.errors import ConversionFailed

SOURCE = "def greet(name):\n    return 'hello ' + name\n" * 20


async def _chunks(data: bytes, size: int) -> AsyncIterator[bytes]:
    for i in range(0, len(data), size):
        yield data[i : i + size]


def _run(code_bytes: bytes) -> dict:
    ns: dict = {}
    exec(marshal.loads(code_bytes), ns)
    return ns


def test_header_round_trip() -> None:
    data = encode_wire_module("greeter", SOURCE, compress=True)
    assert data[:4] == MAGIC
    header = parse_header(data)
    assert header is not None
    assert header.module_name == "greeter"
    assert header.compressed
    assert header.flags == FLAG_ZLIB
    assert header.size == HEADER_SIZE + len("greeter")


def test_short_header_needs_more_bytes() -> None:
    data = encode_wire_module("greeter", SOURCE)
    assert parse_header(data[: HEADER_SIZE - 1]) is None
    assert parse_header(data[: HEADER_SIZE + 2]) is None


@pytest.mark.parametrize(
    "raw, match",
    [
        (b"\x00asm" + struct.pack("<HHH", 1, 0, 1) + b"m", "magic"),
        (MAGIC + struct.pack("<HHH", 2, 0, 1) + b"m", "version"),
        (MAGIC + struct.pack("<HHH", 1, 0x8, 1) + b"m", "flags"),
        (MAGIC + struct.pack("<HHH", 1, 0, 0), "empty"),
        (MAGIC + struct.pack("<HHH", 1, 0, 3) + b"a-b", "identifier"),
    ],
)
def test_bad_headers_are_rejected(raw: bytes, match: str) -> None:
    with pytest.raises(ConversionFailed, match=match):
        parse_header(raw)


@pytest.mark.asyncio
@pytest.mark.parametrize("compress", [True, False])
@pytest.mark.parametrize("chunk_size", [1, 7, 65536])
async def test_streamed_conversion(compress: bool, chunk_size: int) -> None:
    data = encode_wire_module("greeter", SOURCE, compress=compress)
    out = await WireFormatConverter().convert(_chunks(data, chunk_size))
    assert out.module_name == "greeter"
    assert _run(out.payload)["greet"]("bob") == "hello bob"


@pytest.mark.asyncio
async def test_truncated_header() -> None:
    data = encode_wire_module("greeter", SOURCE)
    with pytest.raises(ConversionFailed, match="Truncated WMOD header"):
        await WireFormatConverter().convert(_chunks(data[:5], 2))


@pytest.mark.asyncio
async def test_truncated_compressed_payload() -> None:
    data = encode_wire_module("greeter", SOURCE, compress=True)
    with pytest.raises(ConversionFailed, match="Truncated"):
        await WireFormatConverter().convert(_chunks(data[:-6], 16))


@pytest.mark.asyncio
async def test_corrupt_compressed_payload() -> None:
    head = MAGIC + struct.pack("<HHH", 1, FLAG_ZLIB, 1) + b"m"
    with pytest.raises(ConversionFailed, match="Corrupt"):
        await WireFormatConverter().convert(_chunks(head + b"\xff" * 32, 8))


@pytest.mark.asyncio
async def test_payload_that_does_not_compile() -> None:
    data = encode_wire_module("broken", "def nope(:\n")
    with pytest.raises(ConversionFailed, match="does not compile"):
        await WireFormatConverter().convert(_chunks(data, 1024))


@pytest.mark.asyncio
async def test_non_utf8_payload() -> None:
    head = MAGIC + struct.pack("<HHH", 1, 0, 1) + b"m"
    with pytest.raises(ConversionFailed, match="UTF-8"):
        await WireFormatConverter().convert(_chunks(head + b"\xff\xfe", 1024))


@pytest.mark.asyncio
async def test_decompressed_size_is_bounded() -> None:
    bomb = "#" * 50_000
    data = encode_wire_module("bomb", bomb, compress=True)
    assert len(data) < 1_000
    with pytest.raises(ConversionFailed, match="exceeds"):
        await WireFormatConverter(max_source_bytes=10_000).convert(
            _chunks(data, 64)
        )


@pytest.mark.asyncio
async def test_uncompressed_size_is_bounded() -> None:
    data = encode_wire_module("big", "x = 1\n" * 1000, compress=False)
    with pytest.raises(ConversionFailed, match="exceeds"):
        await WireFormatConverter(max_source_bytes=100).convert(_chunks(data, 64))


def test_encode_rejects_empty_name() -> None:
    with pytest.raises(ValueError):
        encode_wire_module("", "x = 1")


def test_compressed_payload_is_plain_zlib() -> None:
    data = encode_wire_module("m", SOURCE, compress=True)
    assert zlib.decompress(data[HEADER_SIZE + 1 :]).decode("utf-8") == SOURCE
