"""
CLI utility helpers: settings, warehouse handle and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from dimspine.core.errors import ConfigError, DimspineError
from dimspine.core.logging import configure_logging
from dimspine.core.settings import DimspineSettings, load_settings
from dimspine.storage.warehouse import Warehouse

console = Console()
err_console = Console(stderr=True)


# ── Settings / connection helpers ────────────────────────────────────────


def make_settings(**overrides: Any) -> DimspineSettings:
    """
    Load settings with CLI overrides and configure logging from them.

    An invalid value passed on the command line is a usage error (exit 2);
    an invalid value from the environment or `.env` exits 1.
    """
    try:
        settings = load_settings(**overrides)
    except ConfigError as exc:
        if overrides.get(exc.key) is not None:
            raise typer.BadParameter(exc.message, param_hint=_option_flag(exc.key)) from exc
        fail(exc)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings


_OPTION_FLAGS = {"max_workers": "--workers", "database_path": "--database"}


def _option_flag(key: str) -> str:
    return _OPTION_FLAGS.get(key, "--" + key.replace("_", "-"))


def open_warehouse(database: Path | str | None, settings: DimspineSettings) -> Warehouse:
    return Warehouse(database or settings.database_path)


def fail(exc: DimspineError) -> None:
    """Print a structured error and exit non-zero."""
    err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
    context = exc.context.to_dict()
    if context:
        err_console.print(f"[dim]{json.dumps(context, default=str)}[/dim]")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def output_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def print_summary(summary: dict[str, Any], *, title: str = "") -> None:
    """Render a run summary as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in summary.items():
        if isinstance(v, dict):
            console.print(f"  [cyan]{k}[/cyan]:")
            for reason, count in v.items():
                console.print(f"    {reason}: {count}")
        else:
            console.print(f"  [cyan]{k}[/cyan]: {v}")
