#!/usr/bin/env python3
"""
run.py – CLI entry-point for the TestLink exporter.

Usage:
    python run.py --results reports/junit.xml
    python run.py --results reports/junit.xml --build "Nightly 42"
    python run.py --results reports/junit.xml --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from adaptor import TestLinkAdaptor
from config import Settings
from junit_reader import iter_leaves, read_junit_xml
from models import ExportSummary, FixtureConfig, TestResult
from result_exporter import ResultExporter, case_name_for, extract_fixture_name

console = Console()

_STATE_STYLES = {
    "success": "green",
    "failure": "red",
    "error": "red",
    "skipped": "yellow",
    "ignored": "yellow",
}

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

def _show_config(config: FixtureConfig) -> None:
    console.print(
        Panel(
            f"[dim]Server:[/]   {config.connection.url}\n"
            f"[dim]Project:[/]  {config.project}  |  "
            f"[dim]Plan:[/] {config.test_plan}  |  "
            f"[dim]Platform:[/] {config.platform or '—'}  |  "
            f"[dim]Build:[/] {config.build or 'latest'}\n"
            f"[dim]Suite:[/]    {config.test_suite or '(fixture name)'}",
            title="TestLink target",
            border_style="blue",
        )
    )


def _show_results(root: TestResult, config: FixtureConfig) -> None:
    table = Table(title="Test Results", show_lines=False)
    table.add_column("#", style="dim", width=4)
    table.add_column("Suite")
    table.add_column("Test case", style="bold")
    table.add_column("State", width=12)

    for i, leaf in enumerate(iter_leaves(root), 1):
        style = _STATE_STYLES.get(leaf.state.value, "dim")
        table.add_row(
            str(i),
            escape(config.test_suite or extract_fixture_name(leaf.full_name)),
            escape(case_name_for(leaf)),
            f"[{style}]{leaf.state.value}[/]",
        )
    console.print(table)


def _show_summary(summary: ExportSummary) -> None:
    outcomes = ", ".join(f"{k}={v}" for k, v in sorted(summary.outcomes.items())) or "—"
    console.print()
    console.print(
        Panel(
            f"[green bold]Reported:[/]  {len(summary.reported_ids)}  →  {outcomes}\n"
            f"[red bold]Failed:[/]    {len(summary.failed)}  →  {escape(', '.join(summary.failed)) or '—'}\n"
            f"[dim]Skipped:[/]   {summary.skipped_count}",
            title="Export Summary",
            border_style="green" if not summary.failed else "red",
        )
    )


# ── Core orchestration ─────────────────────────────────────────────────

def run(results_path: str, config: FixtureConfig, dry_run: bool = False) -> ExportSummary:
    """Read the report → connect → resolve → export every test case."""
    console.rule("[bold blue]Phase 1 · Read Results")
    root = read_junit_xml(results_path)
    _show_config(config)
    _show_results(root, config)

    if dry_run:
        console.print("\n[yellow bold]DRY RUN[/] – nothing sent to TestLink.")
        return ExportSummary()

    console.rule("[bold blue]Phase 2 · Export to TestLink")
    adaptor = TestLinkAdaptor(create_suites=config.create_suites)
    exporter = ResultExporter(adaptor, default=config)
    summary = exporter.run_finished(root)

    if adaptor.last_exception is not None:
        console.print(f"[red]Last TestLink error:[/] {escape(str(adaptor.last_exception))}")

    _show_summary(summary)
    return summary


# ── CLI ─────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        prog="testlink-export",
        description="Export JUnit XML test results to TestLink.",
    )
    parser.add_argument(
        "--results",
        required=True,
        help="Path to a JUnit XML report.",
    )
    parser.add_argument("--platform", default=None, help="Override TESTLINK_PLATFORM.")
    parser.add_argument("--build", default=None, help="Override TESTLINK_BUILD.")
    parser.add_argument("--suite", default=None, help="Override TESTLINK_TEST_SUITE.")
    parser.add_argument(
        "--no-create-suites",
        dest="create_suites",
        action="store_false",
        default=None,
        help="Fail instead of creating missing test suites.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="List the results but do NOT send them to TestLink.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    args = parser.parse_args()

    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]TestLink Exporter[/]  –  JUnit results → TestLink",
            border_style="bright_magenta",
        )
    )

    Settings.validate()
    config = Settings.fixture_config(
        platform=args.platform,
        build=args.build,
        test_suite=args.suite,
        create_suites=args.create_suites,
    )

    try:
        summary = run(args.results, config, dry_run=args.dry_run)
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        sys.exit(130)
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {exc}")
        logging.getLogger("testlink-exporter").debug("Traceback:", exc_info=True)
        sys.exit(1)

    if summary.failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
