#!/usr/bin/env python3
"""
run.py – CLI entry-point for testrail-sync.

Usage:
    python run.py publish results.jsonl
    python run.py generate-cases ./tests --marker it
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from case_generator import CaseGenerator
from config import ConfigurationError, Settings
from models import GenerationSummary, PublishSummary
from reconciler import ReconciliationEngine
from result_aggregator import ResultAggregator
from section_resolver import SectionResolver
from testrail_client import TestRailClient

console = Console()

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_counts(aggregator: ResultAggregator) -> None:
    table = Table(title="Execution Summary")
    table.add_column("Passes", style="green", justify="right")
    table.add_column("Fails", style="red", justify="right")
    table.add_column("Pending", style="yellow", justify="right")
    table.add_column("Total", style="bold", justify="right")
    table.add_column("Results", style="cyan", justify="right")
    table.add_row(
        str(aggregator.passes),
        str(aggregator.fails),
        str(aggregator.pending),
        str(aggregator.total),
        str(len(aggregator.results)),
    )
    console.print(table)


def _show_publish(summary: PublishSummary) -> None:
    console.print(
        Panel(
            f"[bold]Topology:[/]  {summary.topology.value}\n"
            f"[green bold]Published to:[/]  {summary.target} #{summary.target_id}  →  {summary.url}\n"
            f"[blue bold]Runs:[/]  {summary.run_ids or '—'}\n"
            f"[dim]Results posted:[/]  {summary.results_posted}\n\n"
            f"[yellow]{summary.config_hint}[/]",
            title="Publish Summary",
            border_style="green",
        )
    )


def _show_generation(summary: GenerationSummary) -> None:
    console.print(
        Panel(
            f"[dim]Scanned files:[/]  {summary.scanned_files}\n"
            f"[green bold]Created cases:[/]  {len(summary.created_ids)}  →  {summary.created_ids or '—'}\n"
            f"[yellow bold]Updated files:[/]  {len(summary.updated_files)}\n"
            + "\n".join(f"  • {f}" for f in summary.updated_files),
            title="Case Generation Summary",
            border_style="green",
        )
    )


# ── Commands ────────────────────────────────────────────────────────────

def publish(events_file: Path, settings: Settings) -> PublishSummary | None:
    """Replay a JSON-lines event log and publish the outcome to TestRail."""
    console.rule("[bold blue]Replay test-runner events")
    client = TestRailClient(settings)
    aggregator = ResultAggregator(settings, ReconciliationEngine(client))

    summary: PublishSummary | None = None
    ended = False
    with events_file.open(encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, 1):
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{events_file}:{line_no} is not valid JSON") from exc
            name = event.pop("event", "")
            if name == "end":
                ended = True
            summary = aggregator.dispatch(name, event) or summary

    if not ended:
        summary = aggregator.on_end()

    console.rule("[bold blue]Summary")
    _show_counts(aggregator)
    if summary is not None:
        _show_publish(summary)
    return summary


def generate_cases(base_path: Path, marker: str, settings: Settings) -> GenerationSummary:
    """Annotate un-referenced test declarations under *base_path*."""
    console.rule("[bold blue]Generate cases from test declarations")
    client = TestRailClient(settings)
    resolver = SectionResolver(client, settings.primary_suite_id)
    summary = CaseGenerator(client, resolver, marker=marker).generate(base_path)
    _show_generation(summary)
    return summary


# ── CLI ─────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testrail-sync",
        description="Publish automated test results and generate cases in TestRail.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    pub = sub.add_parser("publish", help="Publish a recorded test-runner event log.")
    pub.add_argument("events", type=Path, help="JSON-lines file of runner events.")

    gen = sub.add_parser(
        "generate-cases", help="Create cases for un-annotated test declarations."
    )
    gen.add_argument("base_path", type=Path, help="Base folder of the test sources.")
    gen.add_argument(
        "--marker",
        default="it",
        help="Name of the test declaration function (default: it).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]testrail-sync[/]  –  TestRail results & case synchroniser",
            border_style="bright_magenta",
        )
    )

    try:
        settings = Settings.from_env()
        settings.validate()
        if args.command == "publish":
            publish(args.events, settings)
        else:
            generate_cases(args.base_path, args.marker, settings)
    except ConfigurationError as exc:
        console.print(f"\n[red bold]Configuration error:[/] {escape(str(exc))}")
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        return 130
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {escape(str(exc))}")
        logging.getLogger("testrail-sync").debug("Traceback:", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
