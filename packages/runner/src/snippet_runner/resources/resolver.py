from __future__ import annotations

from typing import Mapping, Protocol

import httpx
import structlog

from snippet_runner.core.errors import InvalidArgument, ResourceNotFound
from snippet_runner.core.time import monotonic_ms

from .http import framework_uri, get_bytes
from .manifest import ResourceManifest
from .singleflight import FlightState, SingleFlight

log = structlog.get_logger(__name__)


class IResourceResolver(Protocol):
    async def resolve(self, logical_name: str) -> str: ...


class ManifestResolver:
    """
    Resolve logical resource names to fingerprinted delivery names.

    The boot manifest is fetched and indexed once per resolver. Concurrent
    first callers share that single fetch; a failed fetch or an invalid
    manifest is cached and replayed to every later caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        framework_path: str = "_framework",
        manifest_file: str = "boot.json",
    ) -> None:
        self._client = client
        self.framework_path = framework_path
        self.manifest_file = manifest_file
        self._index: SingleFlight[Mapping[str, str]] = SingleFlight(self._fetch_index)

    @property
    def state(self) -> FlightState:
        return self._index.state

    async def resolve(self, logical_name: str) -> str:
        if logical_name is None or not str(logical_name).strip():
            raise InvalidArgument("Logical name cannot be null or empty.")

        index = await self._index.get()
        try:
            return index[logical_name]
        except KeyError:
            raise ResourceNotFound(logical_name) from None

    async def index(self) -> Mapping[str, str]:
        return await self._index.get()

    async def _fetch_index(self) -> Mapping[str, str]:
        url = framework_uri(self.framework_path, self.manifest_file)
        t0 = monotonic_ms()
        log.debug("manifest.fetch", url=url)

        raw = await get_bytes(self._client, url)
        manifest = ResourceManifest.from_json(raw)
        index = manifest.build_index()

        log.info(
            "manifest.indexed",
            url=url,
            entries=len(manifest.entries),
            logical_names=len(index),
            duration_ms=monotonic_ms() - t0,
        )
        return index
