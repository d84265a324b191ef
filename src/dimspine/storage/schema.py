"""
Warehouse table names and DDL.

Dimension and fact tables exist once per ordering (``etl`` / ``elt``), so
both pipelines can publish side by side and be reconciled. Raw landing
tables, the quarantine table and the run ledger are shared.

Table Registry:
    ┌──────────────────────────────────────────────────────────┐
    │ per ordering   dim_customer_<o>  dim_product_<o>          │
    │                dim_date_<o>      fact_sales_<o>           │
    │ shared         raw_customers  raw_products  raw_sales     │
    │                raw_date       quarantine    pipeline_runs │
    └──────────────────────────────────────────────────────────┘

Money is stored as TEXT and read back as ``Decimal`` so that sums reconcile
exactly; SQLite's NUMERIC affinity would round-trip through float.
"""

from __future__ import annotations

from dimspine.domain.models import SOURCE_FIELDS, Entity

SHADOW_SUFFIX = "__next"

RAW_TABLES: dict[Entity, str] = {
    Entity.CUSTOMER: "raw_customers",
    Entity.PRODUCT: "raw_products",
    Entity.SALES: "raw_sales",
    Entity.CALENDAR: "raw_date",
}


def star_tables(ordering: str) -> dict[str, str]:
    """Logical name -> physical table name for one ordering."""
    return {
        "customer": f"dim_customer_{ordering}",
        "product": f"dim_product_{ordering}",
        "calendar": f"dim_date_{ordering}",
        "fact": f"fact_sales_{ordering}",
    }


# =============================================================================
# DDL
# =============================================================================

SHARED_DDL = {
    # Append-only. The core never issues DELETE or UPDATE against it.
    "quarantine": """
        CREATE TABLE IF NOT EXISTS quarantine (
            entry_id TEXT PRIMARY KEY,          -- ULID
            run_id TEXT NOT NULL,
            ordering TEXT,
            source_table TEXT NOT NULL,         -- sales / calendar
            raw_record TEXT NOT NULL,           -- JSON of the untouched extract row
            reason TEXT NOT NULL,
            detail TEXT,
            created_at TEXT NOT NULL
        )
    """,
    "quarantine_idx_reason": """
        CREATE INDEX IF NOT EXISTS idx_quarantine_reason ON quarantine(reason)
    """,
    "runs": """
        CREATE TABLE IF NOT EXISTS pipeline_runs (
            run_id TEXT PRIMARY KEY,
            ordering TEXT NOT NULL,
            status TEXT NOT NULL,               -- completed / failed
            started_at TEXT NOT NULL,
            completed_at TEXT,
            metrics_json TEXT,
            error_json TEXT
        )
    """,
}


def raw_table_ddl(entity: Entity) -> str:
    columns = ",\n            ".join(f"{name} TEXT" for name in SOURCE_FIELDS[entity])
    return f"""
        CREATE TABLE IF NOT EXISTS {RAW_TABLES[entity]} (
            row_number INTEGER PRIMARY KEY,
            {columns}
        )
    """


def star_ddl(ordering: str, suffix: str = "") -> dict[str, str]:
    """DDL for one ordering's star schema; ``suffix`` names shadow copies."""
    t = {name: table + suffix for name, table in star_tables(ordering).items()}
    return {
        "customer": f"""
            CREATE TABLE {t['customer']} (
                customer_key INTEGER PRIMARY KEY,
                customerid TEXT NOT NULL UNIQUE,
                customername TEXT,
                country TEXT,
                signupdate TEXT
            )
        """,
        "product": f"""
            CREATE TABLE {t['product']} (
                product_key INTEGER PRIMARY KEY,
                stockcode TEXT NOT NULL UNIQUE,
                description TEXT,
                unitprice TEXT,
                category TEXT,
                brand TEXT
            )
        """,
        "calendar": f"""
            CREATE TABLE {t['calendar']} (
                date_key INTEGER PRIMARY KEY,   -- YYYYMMDDHHMMSS
                full_datetime TEXT NOT NULL UNIQUE,
                full_date TEXT NOT NULL,
                full_time TEXT NOT NULL,
                year INTEGER NOT NULL,
                month INTEGER NOT NULL,
                day INTEGER NOT NULL,
                hour INTEGER NOT NULL,
                minute INTEGER NOT NULL,
                second INTEGER NOT NULL,
                weekday TEXT NOT NULL,
                is_weekend INTEGER NOT NULL,
                quarter INTEGER NOT NULL
            )
        """,
        "fact": f"""
            CREATE TABLE {t['fact']} (
                sales_key INTEGER PRIMARY KEY,
                date_key INTEGER NOT NULL REFERENCES {t['calendar']}(date_key),
                product_key INTEGER NOT NULL REFERENCES {t['product']}(product_key),
                customer_key INTEGER NOT NULL REFERENCES {t['customer']}(customer_key),
                invoiceid TEXT NOT NULL,
                quantity INTEGER NOT NULL,
                unitprice TEXT NOT NULL,
                totalamount TEXT NOT NULL,
                load_ts TEXT NOT NULL
            )
        """,
    }


def create_shared_tables(conn) -> None:
    """Create raw landing, quarantine and run tables. Safe to call repeatedly."""
    for ddl in SHARED_DDL.values():
        conn.execute(ddl)
    for entity in RAW_TABLES:
        conn.execute(raw_table_ddl(entity))
