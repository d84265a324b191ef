"""
Shared pytest fixtures for dimspine tests.

This module provides:
- A small but complete set of raw extract rows covering every fallback and
  quarantine path
- In-memory and tmp-path SQLite warehouses
- Settings pinned to a single worker and a tmp database
- A helper that writes extract rows out as CSV files

Sample data outcome (both orderings):
    customers   C100 (2020-06-01 row survives), C200
    products    P1 (first row survives, 9.99), P2 (median fallback 9.99), P3
    facts       INV1, INV2, INV7
    quarantine  INV3 product, INV4 product+customer, INV5 customer,
                INV6 calendar, empty-invoice row other, "garbage" calendar row
"""

from __future__ import annotations

import csv
from collections.abc import Callable
from pathlib import Path

import pytest

from dimspine.core.quarantine import QuarantineLog
from dimspine.core.settings import load_settings
from dimspine.domain.models import SOURCE_FIELDS, Entity, RawExtracts
from dimspine.pipeline.extracts import EXTRACT_FILES
from dimspine.storage.warehouse import Warehouse

# =============================================================================
# Sample rows
# =============================================================================

CUSTOMER_ROWS = [
    {"customerid": "C100", "customername": "john smith", "country": "united kingdom", "signupdate": "2019-01-01"},
    {"customerid": "C100", "customername": "John  SMITH", "country": "UK", "signupdate": "2020-06-01"},
    {"customerid": " C200 ", "customername": " jane doe ", "country": "france", "signupdate": "15/02/2020"},
    {"customerid": "", "customername": "nobody", "country": "nowhere", "signupdate": ""},
]

PRODUCT_ROWS = [
    {"stockcode": "P1", "description": "red mug", "unitprice": "£9.99", "category": "kitchen", "brand": "acme"},
    {"stockcode": "P2", "description": "blue cup", "unitprice": "N/A", "category": "kitchen", "brand": "acme"},
    {"stockcode": "P1", "description": "red mug (dup)", "unitprice": "12.00", "category": "kitchen", "brand": "acme"},
    {"stockcode": "P3", "description": "tea towel", "unitprice": "5.00", "category": "linen", "brand": "homely"},
]

SALES_ROWS = [
    {
        "invoiceid": "INV1", "stockcode": "P1", "description": "red mug", "customerid": "C100",
        "date": "2020-03-01 10:15:00", "quantity": "2", "unitprice": "9.99", "totalamount": "19.98",
    },
    {
        "invoiceid": "INV2", "stockcode": "P2", "description": "blue cup", "customerid": "C200",
        "date": "01/03/2020", "quantity": "1", "unitprice": "N/A", "totalamount": "",
    },
    {
        "invoiceid": "INV3", "stockcode": "P9", "description": "mystery", "customerid": "C100",
        "date": "2020-03-02 11:00:00", "quantity": "1", "unitprice": "1.00", "totalamount": "1.00",
    },
    {
        "invoiceid": "INV4", "stockcode": "P9", "description": "mystery", "customerid": "C999",
        "date": "2020-03-02 11:00:00", "quantity": "1", "unitprice": "1.00", "totalamount": "1.00",
    },
    {
        "invoiceid": "INV5", "stockcode": "P1", "description": "red mug", "customerid": "C999",
        "date": "2020-03-02 11:00:00", "quantity": "1", "unitprice": "9.99", "totalamount": "9.99",
    },
    {
        "invoiceid": "", "stockcode": "P1", "description": "red mug", "customerid": "C100",
        "date": "2020-03-01 10:15:00", "quantity": "1", "unitprice": "9.99", "totalamount": "9.99",
    },
    {
        "invoiceid": "INV6", "stockcode": "P3", "description": "tea towel", "customerid": "C200",
        "date": "not a date", "quantity": "1", "unitprice": "5.00", "totalamount": "5.00",
    },
    {
        "invoiceid": "INV7", "stockcode": "P3", "description": "tea towel", "customerid": "C200",
        "date": "2020-03-02 11:00:00.750", "quantity": "abc", "unitprice": "5.00", "totalamount": "",
    },
]

CALENDAR_ROWS = [
    {"date": "2020-03-01 10:15:00", "year": "2020", "month": "3", "day": "1", "weekday": "Sunday"},
    {"date": "2020-03-02 11:00:00.250", "year": "2020", "month": "3", "day": "2", "weekday": "Monday"},
    {"date": "garbage", "year": "", "month": "", "day": "", "weekday": ""},
    {"date": "", "year": "", "month": "", "day": "", "weekday": ""},
]

SAMPLE_ROWS = {
    Entity.CUSTOMER: CUSTOMER_ROWS,
    Entity.PRODUCT: PRODUCT_ROWS,
    Entity.SALES: SALES_ROWS,
    Entity.CALENDAR: CALENDAR_ROWS,
}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture()
def raw_extracts() -> RawExtracts:
    return RawExtracts.from_rows(
        customers=CUSTOMER_ROWS,
        products=PRODUCT_ROWS,
        sales=SALES_ROWS,
        calendar=CALENDAR_ROWS,
    )


@pytest.fixture()
def quarantine() -> QuarantineLog:
    return QuarantineLog(run_id="01TESTRUN000000000000000000")


@pytest.fixture()
def settings(tmp_path):
    return load_settings(max_workers=1, database_path=tmp_path / "dimspine.db")


@pytest.fixture()
def warehouse():
    """In-memory warehouse with shared tables created."""
    wh = Warehouse(":memory:")
    yield wh
    wh.close()


@pytest.fixture()
def file_warehouse(tmp_path):
    wh = Warehouse(tmp_path / "warehouse.db")
    yield wh
    wh.close()


@pytest.fixture()
def write_extracts(tmp_path) -> Callable[..., Path]:
    """Write extract rows as CSV files; returns the directory."""

    def _write(rows: dict[Entity, list[dict]] | None = None, directory: Path | None = None) -> Path:
        target = directory or tmp_path / "extracts"
        target.mkdir(parents=True, exist_ok=True)
        for entity, filename in EXTRACT_FILES.items():
            with open(target / filename, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=list(SOURCE_FIELDS[entity]))
                writer.writeheader()
                writer.writerows((rows or SAMPLE_ROWS)[entity])
        return target

    return _write
