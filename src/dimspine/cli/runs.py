"""
CLI: ``dimspine runs``: run ledger and published star tables.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer

from dimspine.cli.utils import console, make_settings, open_warehouse, output_json, print_table
from dimspine.pipeline.orderings import ORDERINGS

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_runs(
    ordering: str | None = typer.Option(None, "--ordering", "-o", help="etl or elt."),
    limit: int = typer.Option(20, "--limit", "-n"),
    database: Path | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List recorded pipeline runs, newest first."""
    if ordering is not None and ordering.lower() not in ORDERINGS:
        raise typer.BadParameter(
            f"unknown ordering {ordering!r}; expected one of {sorted(ORDERINGS)}", param_hint="--ordering"
        )

    settings = make_settings(log_level="WARNING")
    with open_warehouse(database, settings) as warehouse:
        runs = warehouse.runs(limit=limit, ordering=ordering.lower() if ordering else None)

    if json_out:
        output_json(runs)
        return

    print_table(
        [
            {
                "run_id": r["run_id"],
                "ordering": r["ordering"],
                "status": r["status"],
                "started_at": r["started_at"],
                "facts": json.loads(r["metrics_json"] or "{}").get("facts", ""),
            }
            for r in runs
        ],
        title="Runs",
    )


@app.command("tables")
def list_tables(
    database: Path | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Row counts of the published star tables per ordering."""
    settings = make_settings(log_level="WARNING")
    with open_warehouse(database, settings) as warehouse:
        counts = {name: warehouse.table_counts(name) for name in ORDERINGS if warehouse.has_star(name)}

    if json_out:
        output_json(counts)
        return

    if not counts:
        console.print("[dim]Nothing published yet.[/dim]")
        return
    print_table([{"ordering": name, **tables} for name, tables in counts.items()], title="Published tables")
