"""
SQLite warehouse: raw landing, atomic publish, quarantine and run ledger.

Publish is all-or-nothing. New dimension and fact rows are written to
``__next`` shadow tables, the live tables are dropped and the shadows
renamed, and the run's quarantine entries and ledger row are inserted, all
inside one ``BEGIN IMMEDIATE`` transaction. If anything fails the
transaction rolls back and readers keep seeing the previous run's tables.

The connection runs with ``isolation_level=None`` so transactions are
explicit; SQLite DDL is transactional, which is what makes the swap atomic.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any

from dimspine.core.errors import LandingError, PublishError
from dimspine.core.logging import get_logger
from dimspine.core.quarantine import QuarantineEntry
from dimspine.core.timestamps import from_iso8601, to_iso8601
from dimspine.domain.models import (
    SOURCE_FIELDS,
    CalendarRow,
    CustomerRow,
    Entity,
    FactRow,
    ProductRow,
    RawExtracts,
    freeze_record,
)
from dimspine.storage.schema import (
    RAW_TABLES,
    SHADOW_SUFFIX,
    create_shared_tables,
    star_ddl,
    star_tables,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunRecord:
    """One row of the ``pipeline_runs`` ledger."""

    run_id: str
    ordering: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    error: dict[str, Any] | None = None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


class Warehouse:
    """A SQLite-backed warehouse file (or ``":memory:"``)."""

    def __init__(self, path: str | Path):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        create_shared_tables(self.conn)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Warehouse:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield self.conn
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        self.conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Raw landing (load-then-normalize ordering)
    # ------------------------------------------------------------------

    def land(self, raw: RawExtracts) -> RawExtracts:
        """Replace the raw landing tables with ``raw`` and read them back."""
        try:
            with self.transaction() as conn:
                for entity, table in RAW_TABLES.items():
                    fields = SOURCE_FIELDS[entity]
                    conn.execute(f"DELETE FROM {table}")
                    conn.executemany(
                        f"INSERT INTO {table} (row_number, {', '.join(fields)}) "
                        f"VALUES ({', '.join('?' * (len(fields) + 1))})",
                        [(i, *(record[f] for f in fields)) for i, record in enumerate(raw.of(entity))],
                    )
        except sqlite3.Error as exc:
            raise LandingError("Failed to land raw extracts", cause=exc) from exc

        landed = self.read_raw()
        logger.info(
            "warehouse.landed",
            **{table: len(landed.of(entity)) for entity, table in RAW_TABLES.items()},
        )
        return landed

    def read_raw(self) -> RawExtracts:
        extracts: dict[Entity, tuple] = {}
        for entity, table in RAW_TABLES.items():
            fields = SOURCE_FIELDS[entity]
            rows = self.conn.execute(f"SELECT {', '.join(fields)} FROM {table} ORDER BY row_number").fetchall()
            extracts[entity] = tuple(freeze_record(entity, dict(row)) for row in rows)
        return RawExtracts(
            customers=extracts[Entity.CUSTOMER],
            products=extracts[Entity.PRODUCT],
            sales=extracts[Entity.SALES],
            calendar=extracts[Entity.CALENDAR],
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(
        self,
        ordering: str,
        *,
        customers: Sequence[CustomerRow],
        products: Sequence[ProductRow],
        calendar: Sequence[CalendarRow],
        facts: Sequence[FactRow],
        quarantine: Sequence[QuarantineEntry],
        run: RunRecord,
    ) -> None:
        """Atomically replace one ordering's star schema."""
        live = star_tables(ordering)
        shadow = {name: table + SHADOW_SUFFIX for name, table in live.items()}
        try:
            with self.transaction() as conn:
                for name, ddl in star_ddl(ordering, SHADOW_SUFFIX).items():
                    conn.execute(f"DROP TABLE IF EXISTS {shadow[name]}")
                    conn.execute(ddl)

                conn.executemany(
                    f"INSERT INTO {shadow['customer']} VALUES (?, ?, ?, ?, ?)",
                    [(r.surrogate_key, r.natural_key, r.name, r.country, _text(r.signup_date)) for r in customers],
                )
                conn.executemany(
                    f"INSERT INTO {shadow['product']} VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (r.surrogate_key, r.natural_key, r.description, _text(r.unit_price), r.category, r.brand)
                        for r in products
                    ],
                )
                conn.executemany(
                    f"INSERT INTO {shadow['calendar']} VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            r.surrogate_key,
                            _text(r.instant),
                            _text(r.date),
                            _text(r.time),
                            r.year,
                            r.month,
                            r.day,
                            r.hour,
                            r.minute,
                            r.second,
                            r.weekday_name,
                            int(r.is_weekend),
                            r.quarter,
                        )
                        for r in calendar
                    ],
                )
                conn.executemany(
                    f"INSERT INTO {shadow['fact']} VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            f.surrogate_key,
                            f.calendar_key,
                            f.product_key,
                            f.customer_key,
                            f.invoice_id,
                            f.quantity,
                            _text(f.unit_price),
                            _text(f.total_amount),
                            _text(f.load_timestamp),
                        )
                        for f in facts
                    ],
                )

                # Swap: fact first so no live fact outlives its dimensions
                for name in ("fact", "customer", "product", "calendar"):
                    conn.execute(f"DROP TABLE IF EXISTS {live[name]}")
                for name in ("customer", "product", "calendar", "fact"):
                    conn.execute(f"ALTER TABLE {shadow[name]} RENAME TO {live[name]}")

                self._append_quarantine(conn, quarantine, ordering)
                self._insert_run(conn, run)
        except sqlite3.Error as exc:
            raise PublishError(f"Failed to publish {ordering} star schema", cause=exc).with_context(
                run_id=run.run_id, ordering=ordering
            ) from exc

        logger.info(
            "warehouse.published",
            ordering=ordering,
            customers=len(customers),
            products=len(products),
            calendar=len(calendar),
            facts=len(facts),
            quarantined=len(quarantine),
        )

    @staticmethod
    def _append_quarantine(conn: sqlite3.Connection, entries: Sequence[QuarantineEntry], ordering: str) -> None:
        conn.executemany(
            "INSERT INTO quarantine (entry_id, run_id, ordering, source_table, raw_record, reason, detail, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    e.entry_id,
                    e.run_id,
                    ordering,
                    e.source_table,
                    e.raw_json(),
                    e.reason.value,
                    e.detail,
                    to_iso8601(e.created_at),
                )
                for e in entries
            ],
        )

    @staticmethod
    def _insert_run(conn: sqlite3.Connection, run: RunRecord) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO pipeline_runs "
            "(run_id, ordering, status, started_at, completed_at, metrics_json, error_json) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                run.run_id,
                run.ordering,
                run.status,
                to_iso8601(run.started_at),
                _text(run.completed_at),
                json.dumps(run.metrics, sort_keys=True, default=str),
                json.dumps(run.error, sort_keys=True, default=str) if run.error else None,
            ),
        )

    def record_run(self, run: RunRecord) -> None:
        """Ledger entry for a run that did not publish (failed runs)."""
        with self.transaction() as conn:
            self._insert_run(conn, run)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def has_star(self, ordering: str) -> bool:
        table = star_tables(ordering)["fact"]
        row = self.conn.execute("SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)).fetchone()
        return row is not None

    def table_counts(self, ordering: str) -> dict[str, int]:
        return {
            name: self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for name, table in star_tables(ordering).items()
        }

    def fetch_facts(self, ordering: str) -> list[FactRow]:
        table = star_tables(ordering)["fact"]
        rows = self.conn.execute(f"SELECT * FROM {table} ORDER BY sales_key").fetchall()
        return [
            FactRow(
                surrogate_key=row["sales_key"],
                calendar_key=row["date_key"],
                product_key=row["product_key"],
                customer_key=row["customer_key"],
                invoice_id=row["invoiceid"],
                quantity=row["quantity"],
                unit_price=Decimal(row["unitprice"]),
                total_amount=Decimal(row["totalamount"]),
                load_timestamp=from_iso8601(row["load_ts"]),
            )
            for row in rows
        ]

    def quarantine_entries(
        self,
        *,
        reason: str | None = None,
        source_table: str | None = None,
        run_id: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        clauses, params = [], []
        for column, value in (("reason", reason), ("source_table", source_table), ("run_id", run_id)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        sql = "SELECT * FROM quarantine"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        result = []
        for row in self.conn.execute(sql, params).fetchall():
            entry = dict(row)
            entry["raw_record"] = json.loads(entry["raw_record"])
            result.append(entry)
        return result

    def runs(self, limit: int = 20, ordering: str | None = None) -> list[dict[str, Any]]:
        """Run ledger rows, newest first."""
        sql, params = "SELECT * FROM pipeline_runs", []
        if ordering is not None:
            sql += " WHERE ordering = ?"
            params.append(ordering)
        sql += " ORDER BY started_at DESC LIMIT ?"
        params.append(limit)
        return [dict(row) for row in self.conn.execute(sql, params).fetchall()]
