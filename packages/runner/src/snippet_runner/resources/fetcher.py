from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Sequence

import httpx
import structlog

from snippet_runner.convert import FormatConverter, WireFormatConverter
from snippet_runner.core.errors import RunnerError

from .http import framework_uri, stream_get
from .resolver import IResourceResolver

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReferenceBinary:
    """
    A converted reference module, owned by one compile request.
    """

    logical_name: str
    delivery_name: str
    module_name: str
    payload: bytes


class ReferenceFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        resolver: IResourceResolver,
        *,
        converter: FormatConverter | None = None,
        framework_path: str = "_framework",
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._converter: FormatConverter = converter or WireFormatConverter()
        self.framework_path = framework_path

    async def fetch_reference(self, logical_name: str) -> ReferenceBinary:
        delivery_name = await self._resolver.resolve(logical_name)
        url = framework_uri(self.framework_path, delivery_name)
        log.debug("reference.fetch", logical_name=logical_name, url=url)

        async with stream_get(self._client, url) as chunks:
            converted = await self._converter.convert(chunks)

        return ReferenceBinary(
            logical_name=logical_name,
            delivery_name=delivery_name,
            module_name=converted.module_name,
            payload=converted.payload,
        )

    async def fetch_all(
        self, logical_names: Sequence[str], *, concurrency: int = 4
    ) -> list[ReferenceBinary]:
        """
        Fetch every name concurrently; the result keeps the input order.

        The first failure cancels the remaining fetches and is re-raised as
        is, so no fetch outlives the call.
        """
        sem = asyncio.Semaphore(max(1, concurrency))
        results: list[ReferenceBinary | None] = [None] * len(logical_names)

        async def _one(i: int, name: str) -> None:
            async with sem:
                results[i] = await self.fetch_reference(name)

        try:
            async with asyncio.TaskGroup() as tg:
                for i, name in enumerate(logical_names):
                    tg.create_task(_one(i, name))
        except BaseExceptionGroup as eg:
            raise _first_error(eg)

        return [r for r in results if r is not None]


def _first_error(eg: BaseExceptionGroup) -> BaseException:
    """
    First leaf exception of a task group failure, preferring RunnerError.
    """
    leaves: list[BaseException] = []
    stack: list[BaseException] = [eg]
    while stack:
        e = stack.pop(0)
        if isinstance(e, BaseExceptionGroup):
            stack[:0] = e.exceptions
        else:
            leaves.append(e)
    return next((e for e in leaves if isinstance(e, RunnerError)), leaves[0])
