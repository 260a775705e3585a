from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import asdict, dataclass
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from snippet_runner.core import (
    RunnerError,
    Settings,
    atomic_write_json,
    bind,
    configure_logging,
    error_record_from_exc,
    format_duration_ms,
    get_logger,
    load_settings,
    new_run_id,
)
from snippet_runner.diagnostics import DiagnosticSink, LogEvent, Severity
from snippet_runner.framework import build_framework
from snippet_runner.pipeline import RunReport, build_runner

console = Console()

_STYLES: dict[Severity, str] = {
    Severity.DEBUG: "dim",
    Severity.INFO: "",
    Severity.WARNING: "yellow",
    Severity.ERROR: "bold red",
}


@dataclass(frozen=True, slots=True)
class _CommonArgs:
    cmd: str
    env: str | None
    base_url: str | None
    references: list[str] | None
    verbose: bool


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--env",
        choices=("development", "production"),
        default=None,
        help="Pick the base endpoint by environment (default: SNIPPET_RUNNER_ENVIRONMENT).",
    )
    p.add_argument(
        "--base-url",
        default=None,
        help="Override the base endpoint serving _framework/ resources.",
    )
    p.add_argument(
        "--reference",
        action="append",
        dest="references",
        help="Logical reference name (repeatable). If omitted, uses SNIPPET_RUNNER_REFERENCES.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug events (timings, unit identity).",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="snippet-runner")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", help="Compile and execute a snippet file ('-' for stdin)")
    sp.add_argument("file")
    sp.add_argument("--report", default=None, help="Write the run report JSON here.")
    _add_common_args(sp)

    sp = sub.add_parser("resolve", help="Resolve logical names to delivery names")
    sp.add_argument("names", nargs="+")
    _add_common_args(sp)

    sp = sub.add_parser(
        "build-framework",
        help="Pack *.py reference modules into fingerprinted WMOD files + boot.json",
    )
    sp.add_argument("src_dir")
    sp.add_argument("out_dir")
    sp.add_argument("--no-compress", action="store_true")

    return p


def _common(args: argparse.Namespace) -> _CommonArgs:
    return _CommonArgs(
        cmd=str(args.cmd),
        env=getattr(args, "env", None),
        base_url=getattr(args, "base_url", None),
        references=list(args.references) if getattr(args, "references", None) else None,
        verbose=bool(getattr(args, "verbose", False)),
    )


def _effective_settings(base: Settings, common: _CommonArgs) -> Settings:
    update: dict[str, object] = {}
    if common.env:
        update["environment"] = common.env
    if common.base_url:
        update["base_url"] = common.base_url
    if common.references is not None:
        update["references"] = common.references
    return base.model_copy(update=update) if update else base


def _event_printer(verbose: bool):
    # bound to the real stdout; the snippet's stdout is redirected into the sink
    out = Console(file=sys.stdout)

    def _print(event: LogEvent) -> None:
        if event.severity is Severity.DEBUG and not verbose:
            return
        out.print(Text(event.message, style=_STYLES[event.severity]))

    return _print


def _read_source(file: str) -> str:
    if file == "-":
        return sys.stdin.read()
    return Path(file).read_text(encoding="utf-8")


async def _run(
    settings: Settings, common: _CommonArgs, source: str, run_id: str
) -> RunReport:
    sink = DiagnosticSink(mirror=settings.log_format == "json")
    async with build_runner(settings, sink=sink) as session:
        session.sink.subscribe(_event_printer(common.verbose))
        return await session.runner.run(source, run_id=run_id)


async def _resolve(settings: Settings, names: list[str]) -> dict[str, str]:
    async with build_runner(settings) as session:
        return {n: await session.resolver.resolve(n) for n in names}


def _print_report(report: RunReport, report_path: str | None) -> None:
    tbl = Table(title="Result", show_header=False, box=None)
    tbl.add_row(
        "status",
        "[green]completed[/green]" if report.ok else f"[red]{report.status}[/red]",
    )
    tbl.add_row("run_id", report.run_id)
    tbl.add_row("duration", format_duration_ms(report.duration_ms))
    for phase, ms in report.timings.items():
        if ms is not None:
            tbl.add_row(phase.removesuffix("_ms"), format_duration_ms(ms))
    if report_path:
        tbl.add_row("report", report_path)
    console.print(tbl)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    common = _common(args)

    s = load_settings()
    configure_logging(level=s.log_level, fmt=s.log_format)
    log = get_logger("snippet_runner")

    run_id = new_run_id()
    bind(run_id=run_id, command=common.cmd)

    if common.cmd == "build-framework":
        packed = build_framework(
            Path(args.src_dir), Path(args.out_dir), compress=not args.no_compress
        )
        tbl = Table(title="Framework", show_header=True, box=None)
        tbl.add_column("logical")
        tbl.add_column("delivery")
        tbl.add_column("bytes", justify="right")
        for m in packed:
            tbl.add_row(m.logical_name, m.delivery_name, str(m.bytes))
        console.print(tbl)
        return 0

    settings = _effective_settings(s, common)

    if common.cmd == "resolve":
        try:
            resolved = asyncio.run(_resolve(settings, list(args.names)))
        except RunnerError as e:
            console.print(f"[red]{type(e).__name__}[/red]: {e}")
            return 1
        for name, delivery in resolved.items():
            console.print(f"{name} -> {delivery}")
        return 0

    console.print(
        Panel.fit(
            Text(
                f"snippet-runner - {common.cmd}\nrun_id={run_id}\n"
                f"base_url={settings.resolved_base_url()}",
                style="bold",
            ),
            title="Run",
        )
    )

    try:
        report = asyncio.run(
            _run(settings, common, _read_source(args.file), run_id)
        )
    except RunnerError as e:
        rec = error_record_from_exc(e)
        log.error("run.aborted", error=rec.message, exc_type=rec.exc_type)
        if args.report:
            atomic_write_json(
                Path(args.report),
                {"run_id": run_id, "status": "failed", "error": asdict(rec)},
            )
        console.print(f"[red]{rec.exc_type}[/red]: {rec.message}")
        return 1

    if args.report:
        report.write_json(Path(args.report))
    _print_report(report, args.report)
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
