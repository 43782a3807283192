from __future__ import annotations

import argparse
import sys
from pathlib import Path

from promote_release.core import (
    ConfigError,
    ReleaseError,
    WorkLayout,
    bind,
    configure_logging,
    get_logger,
    load_settings,
    new_run_id,
)
from promote_release.core.errors import error_chain
from promote_release.orchestrator import ReleaseOrchestrator
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console()
err_console = Console(stderr=True)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="promote-release",
        description=(
            "Promote a nightly, beta or stable toolchain release. "
            "Everything except the work directory is read from PROMOTE_RELEASE_* variables."
        ),
    )
    p.add_argument("work_dir", type=Path, help="Scratch directory for artifacts and run records")
    p.add_argument(
        "--date",
        default=None,
        help="Release date (YYYY-MM-DD). Defaults to today in UTC.",
    )
    return p


def _print_error(exc: BaseException) -> None:
    chain = error_chain(exc)
    err_console.print(f"[bold red]Error:[/] {escape(chain[0])}")
    for cause in chain[1:]:
        err_console.print(f"  caused by: {escape(cause)}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        s = load_settings()
    except ConfigError as e:
        _print_error(e)
        return 1

    configure_logging(level=s.log_level, fmt=s.log_format)
    log = get_logger("promote_release")

    run_id = new_run_id()
    bind(run_id=run_id, channel=s.channel.value, action=s.action.value)

    layout = WorkLayout(root=Path(args.work_dir).resolve())

    console.print(
        Panel.fit(
            Text(
                f"promote-release - {s.action.value}\nrun_id={run_id}\nchannel={s.channel.value}",
                style="bold",
            ),
            title="Run",
        )
    )

    orchestrator = ReleaseOrchestrator(settings=s, layout=layout, logger=log, date=args.date)
    try:
        report = orchestrator.run(
            run_id=run_id,
            meta={"action": s.action.value, "channel": s.channel.value},
        )
    except ReleaseError as e:
        _print_error(e)
        return 1

    tbl = Table(title="Result", show_header=True, box=None)
    status_style = {"success": "green", "skipped": "yellow"}.get(report.status, "red")
    tbl.add_row("status", f"[{status_style}]{report.status}[/{status_style}]")
    for st in report.stages:
        if st.status == "skipped" and st.skip_reason:
            tbl.add_row("skipped", escape(f"{st.stage}: {st.skip_reason}"))
    for st in report.failed_stages():
        tbl.add_row("failed", escape(f"{st.stage}: {st.error.message if st.error else ''}"))
    tbl.add_row("events", str(report.events_jsonl))
    console.print(tbl)

    for st in report.failed_stages():
        if st.error is not None and len(st.error.chain) > 1:
            print("\n".join(st.error.chain), file=sys.stderr)

    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
