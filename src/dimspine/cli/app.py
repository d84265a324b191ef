"""
Root Typer application for the dimspine CLI.

    dimspine run INPUT_DIR [--ordering etl|elt|both] [--database] [--workers] [--json]
    dimspine reconcile INPUT_DIR [--database] [--json]
    dimspine quarantine list [--reason] [--source] [--run-id] [--limit] [--json]
    dimspine runs list [--ordering] [--limit] [--json]
    dimspine runs tables [--json]
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import typer
from typer import Typer

from dimspine.cli.quarantine import app as quarantine_app
from dimspine.cli.runs import app as runs_app
from dimspine.cli.utils import (
    console,
    fail,
    make_settings,
    open_warehouse,
    output_json,
    print_summary,
    print_table,
)
from dimspine.core.errors import ConfigError, DimspineError
from dimspine.pipeline.extracts import read_extracts
from dimspine.pipeline.orderings import ORDERINGS, get_ordering
from dimspine.pipeline.reconcile import ReconciliationChecker, ReconciliationReport
from dimspine.pipeline.runner import PipelineResult, RunOutput, run_orderings
from dimspine.storage.warehouse import Warehouse

app = Typer(
    name="dimspine",
    help="dimspine: conform raw sales extracts into a star schema.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("dimspine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"dimspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """dimspine CLI: run pipelines, reconcile orderings, inspect quarantine."""


# ── Helpers ──────────────────────────────────────────────────────────────


def _ordering_names(ordering: str) -> tuple[str, ...]:
    if ordering.lower() == "both":
        return tuple(ORDERINGS)
    try:
        return (get_ordering(ordering).name,)
    except ConfigError as exc:
        raise typer.BadParameter(exc.message, param_hint="--ordering") from exc


def _result_payload(name: str, result: PipelineResult) -> dict:
    return {
        "ordering": name,
        "status": result.status.value,
        "run_id": result.run_id,
        "duration_seconds": result.duration_seconds,
        "error": result.error,
        "metrics": result.metrics,
    }


def _print_report(report: ReconciliationReport) -> None:
    print_table(
        [
            {"check": c.name, "status": c.status.value, "message": c.message}
            for c in report.checks
        ],
        title=f"Reconciliation {report.left} vs {report.right}",
    )
    if report.is_reconciled:
        console.print("[green]Orderings reconcile.[/green]")
    else:
        console.print(f"[bold red]{len(report.discrepancies)} discrepancy(ies).[/bold red]")


def _load(input_dir: Path, database: Path | None, workers: int | None, log_level: str | None):
    settings = make_settings(max_workers=workers, log_level=log_level, database_path=database)
    try:
        raw = read_extracts(input_dir)
    except DimspineError as exc:
        fail(exc)
    return settings, raw


def _published(warehouse: Warehouse, output: RunOutput) -> RunOutput:
    """The run output with its facts read back from the published table."""
    return replace(output, facts=tuple(warehouse.fetch_facts(output.ordering)))


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("run")
def run_pipeline(
    input_dir: Path = typer.Argument(..., help="Directory holding customers/products/sales/date CSV extracts."),
    ordering: str = typer.Option("both", "--ordering", "-o", help="etl, elt or both."),
    database: Path | None = typer.Option(None, "--database", "-d", help="SQLite warehouse file."),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Thread pool size."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR."),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one or both orderings and publish their star schemas."""
    names = _ordering_names(ordering)
    settings, raw = _load(input_dir, database, workers, log_level)
    with open_warehouse(database, settings) as warehouse:
        results = run_orderings(raw, names, settings, warehouse)

    report = None
    if len(results) == len(names) == 2 and all(r.succeeded for r in results.values()):
        etl, elt = (results[n].output for n in names)
        report = ReconciliationChecker(settings.reconcile_tolerance).compare(etl, elt)

    if json_out:
        payload = {"runs": [_result_payload(n, r) for n, r in results.items()]}
        if report is not None:
            payload["reconciliation"] = report.to_dict()
        output_json(payload)
    else:
        for name, result in results.items():
            if result.succeeded:
                print_summary(result.output.summary(), title=f"{name}: {result.status.value}")
            else:
                console.print(f"[bold red]{name}: failed[/bold red] {result.error}")
        if report is not None:
            _print_report(report)

    if not all(r.succeeded for r in results.values()) or len(results) != len(names):
        raise typer.Exit(code=1)
    if report is not None and not report.is_reconciled:
        raise typer.Exit(code=1)


@app.command("reconcile")
def reconcile(
    input_dir: Path = typer.Argument(..., help="Directory holding the CSV extracts."),
    database: Path | None = typer.Option(None, "--database", "-d", help="SQLite warehouse file."),
    log_level: str | None = typer.Option(None, "--log-level"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run both orderings over the same input and compare their published fact tables."""
    names = tuple(ORDERINGS)
    settings, raw = _load(input_dir, database, None, log_level)
    with open_warehouse(database, settings) as warehouse:
        results = run_orderings(raw, names, settings, warehouse)

        failed = [n for n in names if n not in results or not results[n].succeeded]
        if failed:
            for name in failed:
                result = results.get(name)
                console.print(f"[bold red]{name}: failed[/bold red] {result.error if result else 'not run'}")
            raise typer.Exit(code=1)

        published = [_published(warehouse, results[n].output) for n in names]

    report = ReconciliationChecker(settings.reconcile_tolerance).compare(*published)
    if json_out:
        output_json(report.to_dict())
    else:
        _print_report(report)

    if not report.is_reconciled:
        raise typer.Exit(code=1)


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(quarantine_app, name="quarantine", help="Quarantined rows.")
app.add_typer(runs_app, name="runs", help="Run ledger and published tables.")
