"""
CLI: ``dimspine quarantine``: inspect quarantined rows.
"""

from __future__ import annotations

from pathlib import Path

import typer

from dimspine.cli.utils import make_settings, open_warehouse, output_json, print_table
from dimspine.core.quarantine import QuarantineReason

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_quarantine(
    reason: str | None = typer.Option(None, "--reason", "-r", help="Filter by reason text."),
    source_table: str | None = typer.Option(None, "--source", "-s", help="sales or calendar."),
    run_id: str | None = typer.Option(None, "--run-id"),
    limit: int = typer.Option(50, "--limit", "-n"),
    database: Path | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List quarantined rows, oldest first."""
    if reason is not None and reason not in {r.value for r in QuarantineReason}:
        valid = ", ".join(repr(r.value) for r in QuarantineReason)
        raise typer.BadParameter(f"unknown reason {reason!r}; expected one of {valid}", param_hint="--reason")

    settings = make_settings(log_level="WARNING")
    with open_warehouse(database, settings) as warehouse:
        entries = warehouse.quarantine_entries(reason=reason, source_table=source_table, run_id=run_id, limit=limit)

    if json_out:
        output_json(entries)
        return

    print_table(
        [
            {
                "run_id": e["run_id"],
                "ordering": e["ordering"],
                "source": e["source_table"],
                "reason": e["reason"],
                "detail": e["detail"],
                "record": e["raw_record"],
            }
            for e in entries
        ],
        title="Quarantine",
    )
