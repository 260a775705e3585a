from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

import httpx
import structlog

from snippet_runner.core.errors import NetworkFailed

log = structlog.get_logger(__name__)


class HttpStatusError(NetworkFailed):
    """
    Unexpected HTTP status for a framework resource. Not retried.
    """

    def __init__(
        self,
        *,
        method: str,
        url: str,
        status_code: int,
        body_snippet: str | None,
    ) -> None:
        msg = f"HTTP {status_code} for {method} {url}"
        if body_snippet:
            msg += f" (body: {body_snippet})"
        super().__init__(msg)
        self.method = method
        self.url = url
        self.status_code = status_code


def make_http_client(
    *,
    base_url: str,
    timeout: httpx.Timeout | float | None = None,
    follow_redirects: bool = True,
    user_agent: str = "snippet-runner/0.1",
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    if timeout is None:
        t = httpx.Timeout(connect=5.0, read=30.0, write=30.0, pool=5.0)
    elif isinstance(timeout, httpx.Timeout):
        t = timeout
    else:
        t = httpx.Timeout(float(timeout), connect=min(5.0, float(timeout)))
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=t,
        follow_redirects=follow_redirects,
        headers={"User-Agent": user_agent},
        transport=transport,
    )


def framework_uri(framework_path: str, name: str) -> str:
    """
    Join the framework path prefix and a file name into a client-relative URI.
    """
    prefix = framework_path.strip("/")
    return f"/{prefix}/{name}" if prefix else f"/{name}"


async def _body_snippet(resp: httpx.Response, *, limit: int = 200) -> str | None:
    """
    Best-effort, bounded snippet for error messages.
    """
    try:
        if resp.is_stream_consumed or resp.is_closed:
            s = (resp.text or "")[:limit].strip()
            return s or None
        buf = bytearray()
        async for chunk in resp.aiter_bytes(chunk_size=min(4096, limit * 4)):
            buf.extend(chunk)
            if len(buf) >= limit * 4:
                break
        s = bytes(buf).decode("utf-8", errors="replace")[:limit].strip()
        return s or None
    except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError):
        return None


async def get_bytes(
    client: httpx.AsyncClient,
    url: str,
    *,
    allowed_statuses: Iterable[int] = (200,),
) -> bytes:
    """
    Single GET, fully buffered. Transport errors and unexpected statuses
    surface as NetworkFailed.
    """
    allowed = set(allowed_statuses)
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        raise NetworkFailed(f"GET {url} failed: {e!r}") from e

    if resp.status_code not in allowed:
        raise HttpStatusError(
            method="GET",
            url=str(resp.request.url),
            status_code=resp.status_code,
            body_snippet=await _body_snippet(resp),
        )
    return resp.content


@asynccontextmanager
async def stream_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    chunk_bytes: int = 1024 * 64,
    allowed_statuses: Iterable[int] = (200,),
) -> AsyncIterator[AsyncIterator[bytes]]:
    """
    Streaming GET. Yields an async byte iterator over the response body.

    Transport errors raised while opening or reading the body are mapped to
    NetworkFailed; any other exception from the consumer passes through.
    """
    allowed = set(allowed_statuses)
    try:
        async with client.stream("GET", url) as resp:
            if resp.status_code not in allowed:
                raise HttpStatusError(
                    method="GET",
                    url=str(resp.request.url),
                    status_code=resp.status_code,
                    body_snippet=await _body_snippet(resp),
                )
            yield _guarded_chunks(resp, url, chunk_bytes)
    except httpx.HTTPError as e:
        raise NetworkFailed(f"GET {url} failed: {e!r}") from e


async def _guarded_chunks(
    resp: httpx.Response, url: str, chunk_bytes: int
) -> AsyncIterator[bytes]:
    try:
        async for chunk in resp.aiter_bytes(chunk_size=chunk_bytes):
            if chunk:
                yield chunk
    except httpx.HTTPError as e:
        raise NetworkFailed(f"GET {url} failed while reading body: {e!r}") from e
