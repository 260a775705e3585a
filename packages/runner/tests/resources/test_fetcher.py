from __future__ import annotations

import asyncio
import marshal
from types import CodeType

import pytest

from snippet_runner.core.errors import ConversionFailed, NetworkFailed, ResourceNotFound
from snippet_runner.resources import HttpStatusError, ManifestResolver, ReferenceFetcher


def _fetcher(client) -> ReferenceFetcher:
    return ReferenceFetcher(client, ManifestResolver(client))


@pytest.mark.asyncio
async def test_fetch_reference_converts_module(framework) -> None:
    ref = framework.add_module("textfmt", "def shout(s):\n    return s.upper()\n")
    framework.publish(ref)

    async with framework.client() as client:
        binary = await _fetcher(client).fetch_reference("textfmt.wmod")

    assert binary.logical_name == "textfmt.wmod"
    assert binary.delivery_name == ref[1]
    assert binary.module_name == "textfmt"
    code = marshal.loads(binary.payload)
    assert isinstance(code, CodeType)
    ns: dict = {}
    exec(code, ns)
    assert ns["shout"]("hi") == "HI"


@pytest.mark.asyncio
async def test_fetch_all_preserves_order_under_concurrency(framework) -> None:
    refs = [
        framework.add_module(name, f"NAME = {name!r}\n")
        for name in ("alpha", "beta", "gamma")
    ]
    framework.publish(*refs)
    # make the first request the slowest
    framework.delays[f"/_framework/{refs[0][1]}"] = 0.05
    framework.delays[f"/_framework/{refs[1][1]}"] = 0.02

    async with framework.client() as client:
        out = await _fetcher(client).fetch_all(
            ["alpha.wmod", "beta.wmod", "gamma.wmod"], concurrency=3
        )

    assert [b.module_name for b in out] == ["alpha", "beta", "gamma"]
    assert framework.manifest_hits() == 1


@pytest.mark.asyncio
async def test_unknown_reference_propagates_resolution_error(framework) -> None:
    framework.publish(framework.add_module("alpha", "X = 1\n"))
    async with framework.client() as client:
        with pytest.raises(ResourceNotFound):
            await _fetcher(client).fetch_reference("beta.wmod")


@pytest.mark.asyncio
async def test_missing_delivery_file_is_network_failure(framework) -> None:
    framework.set_manifest({"alpha.dead.wmod": "alpha.wmod"})
    async with framework.client() as client:
        with pytest.raises(HttpStatusError) as ei:
            await _fetcher(client).fetch_reference("alpha.wmod")
    assert ei.value.status_code == 404
    assert framework.hits["/_framework/alpha.dead.wmod"] == 1


@pytest.mark.asyncio
async def test_transport_error_is_not_retried(framework) -> None:
    logical, delivery = framework.add_module("alpha", "X = 1\n")
    framework.publish((logical, delivery))
    framework.broken.add(f"/_framework/{delivery}")

    async with framework.client() as client:
        with pytest.raises(NetworkFailed):
            await _fetcher(client).fetch_reference(logical)
    assert framework.hits[f"/_framework/{delivery}"] == 1


@pytest.mark.asyncio
async def test_garbage_body_is_conversion_failure(framework) -> None:
    framework.set_manifest({"alpha.x.wmod": "alpha.wmod"})
    framework.put("/_framework/alpha.x.wmod", b"\x00asm\x01\x00\x00\x00 not a wmod")
    async with framework.client() as client:
        with pytest.raises(ConversionFailed):
            await _fetcher(client).fetch_reference("alpha.wmod")


@pytest.mark.asyncio
async def test_failed_fetch_cancels_sibling_fetches(framework) -> None:
    alpha = framework.add_module("alpha", "X = 1\n")
    beta = framework.add_module("beta", "Y = 2\n")
    framework.publish(alpha, beta)
    framework.broken.add(f"/_framework/{alpha[1]}")
    framework.delays[f"/_framework/{beta[1]}"] = 0.2

    async with framework.client() as client:
        with pytest.raises(NetworkFailed) as ei:
            await _fetcher(client).fetch_all(["alpha.wmod", "beta.wmod"])

        # the original transport error is still chained
        assert ei.value.__cause__ is not None
        current = asyncio.current_task()
        pending = [t for t in asyncio.all_tasks() if t is not current and not t.done()]
        assert pending == []
