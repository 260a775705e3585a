from __future__ import annotations

import asyncio
import json
from collections import Counter
from pathlib import Path

import httpx
import pytest

from snippet_runner.convert import encode_wire_module
from snippet_runner.core.hashing import fingerprint
from snippet_runner.resources import make_http_client

BASE_URL = "https://framework.test"


class FakeFramework:
    """
    In-memory stand-in for the server hosting `_framework/`.
    """

    def __init__(self) -> None:
        self.base_url = BASE_URL
        self.files: dict[str, bytes] = {}
        self.hits: Counter[str] = Counter()
        self.delays: dict[str, float] = {}
        self.broken: set[str] = set()

    def put(self, path: str, body: bytes) -> None:
        self.files[path] = body

    def set_manifest(self, fingerprinting: dict[str, str] | None, **extra) -> None:
        doc: dict = dict(extra)
        if fingerprinting is not None:
            doc["resources"] = {"fingerprinting": fingerprinting}
        self.put("/_framework/boot.json", json.dumps(doc).encode("utf-8"))

    def add_module(
        self, name: str, source: str, *, compress: bool = True
    ) -> tuple[str, str]:
        """Serve a reference module; returns (logical_name, delivery_name)."""
        data = encode_wire_module(name, source, compress=compress)
        logical = f"{name}.wmod"
        delivery = f"{name}.{fingerprint(data)}.wmod"
        self.put(f"/_framework/{delivery}", data)
        return logical, delivery

    def publish(self, *modules: tuple[str, str]) -> None:
        self.set_manifest({delivery: logical for logical, delivery in modules})

    def manifest_hits(self) -> int:
        return self.hits["/_framework/boot.json"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.hits[path] += 1
        delay = self.delays.get(path)
        if delay:
            await asyncio.sleep(delay)
        if path in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        body = self.files.get(path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return make_http_client(base_url=BASE_URL, transport=self.transport())


@pytest.fixture
def framework() -> FakeFramework:
    return FakeFramework()


@pytest.fixture
def reference_dir(tmp_path: Path) -> Path:
    d = tmp_path / "refs"
    d.mkdir()
    (d / "textfmt.py").write_text(
        "def shout(s: str) -> str:\n    return s.upper() + '!'\n", encoding="utf-8"
    )
    (d / "mathx.py").write_text(
        "def clamp(x, lo, hi):\n    return max(lo, min(hi, x))\n", encoding="utf-8"
    )
    return d
