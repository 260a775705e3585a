from __future__ import annotations

import argparse
import asyncio
import sys
import tempfile
from pathlib import Path

import httpx

from snippet_runner.core import Settings, configure_logging
from snippet_runner.diagnostics import DiagnosticSink
from snippet_runner.framework import build_framework
from snippet_runner.pipeline import RunnerSession

SMOKE_BASE_URL = "https://smoke.local"


def _static_transport(site_root: Path) -> httpx.MockTransport:
    """
    Serve files under site_root as if they were hosted at SMOKE_BASE_URL.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        p = (site_root / request.url.path.lstrip("/")).resolve()
        if site_root.resolve() not in p.parents or not p.is_file():
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=p.read_bytes())

    return httpx.MockTransport(handler)


async def _run(site_root: Path, references: list[str], source: str) -> int:
    out = sys.stdout
    sink = DiagnosticSink(mirror=False)
    sink.subscribe(lambda e: print(f"[{e.severity.value:>7}] {e.message}", file=out))
    settings = Settings(base_url=SMOKE_BASE_URL, references=references)

    async with RunnerSession(
        settings, sink=sink, transport=_static_transport(site_root)
    ) as session:
        report = await session.runner.run(source)

    print(f"\nstatus={report.status} duration_ms={report.duration_ms}")
    for phase, ms in report.timings.items():
        print(f"  {phase}: {ms}")
    return 0 if report.ok else 1


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Pack a reference directory, serve it in-process, and run a snippet against it."
    )
    parser.add_argument("refs_dir", help="Directory of *.py reference modules")
    parser.add_argument("snippet", help="Snippet file to compile and run")
    args = parser.parse_args()

    configure_logging(level="WARNING")

    refs_dir = Path(args.refs_dir)
    source = Path(args.snippet).read_text(encoding="utf-8")

    with tempfile.TemporaryDirectory(prefix="snippet-smoke-") as tmp:
        site_root = Path(tmp)
        packed = build_framework(refs_dir, site_root)
        print(f"Packed {len(packed)} reference(s) into {site_root / '_framework'}")
        for m in packed:
            print(f"  {m.logical_name} -> {m.delivery_name} ({m.bytes} bytes)")
        print()
        return asyncio.run(
            _run(site_root, [m.logical_name for m in packed], source)
        )


if __name__ == "__main__":
    raise SystemExit(main())
