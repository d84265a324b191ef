"""Tests for dimspine.domain.models: raw freezing and cleaned records."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from dimspine.domain.models import (
    CalendarRecord,
    CleanedExtracts,
    CustomerRecord,
    Entity,
    ProductRecord,
    RawExtracts,
    SaleRecord,
    freeze_record,
)
from dimspine.domain.normalize import UNRESOLVED


class TestFreezeRecord:
    def test_projects_to_fixed_fields(self):
        record = freeze_record(Entity.CUSTOMER, {"customerid": "C1", "extra": "x"})
        assert set(record) == {"customerid", "customername", "country", "signupdate"}
        assert record["customername"] == ""

    def test_none_becomes_empty_text(self):
        record = freeze_record(Entity.PRODUCT, {"stockcode": None})
        assert record["stockcode"] == ""

    def test_read_only(self):
        record = freeze_record(Entity.CALENDAR, {"date": "2020-01-01"})
        with pytest.raises(TypeError):
            record["date"] = "2021-01-01"


class TestRawExtracts:
    def test_of_entity(self, raw_extracts):
        assert raw_extracts.of(Entity.SALES) is raw_extracts.sales
        assert len(raw_extracts.of(Entity.CUSTOMER)) == 4

    def test_default_empty(self):
        assert RawExtracts().sales == ()


class TestCleanedRecords:
    def test_customer(self):
        raw = freeze_record(
            Entity.CUSTOMER,
            {"customerid": " C200 ", "customername": " jane doe ", "country": "france", "signupdate": "15/02/2020"},
        )
        record = CustomerRecord.from_raw(raw, position=3)
        assert record.position == 3
        assert record.natural_key == "C200"
        assert record.name == "Jane Doe"
        assert record.country == "France"
        assert record.signup_date == date(2020, 2, 15)

    def test_product_unresolved_price(self):
        raw = freeze_record(Entity.PRODUCT, {"stockcode": "P2", "description": "blue cup", "unitprice": "N/A"})
        record = ProductRecord.from_raw(raw, position=0)
        assert record.unit_price is UNRESOLVED
        assert record.description == "Blue Cup"
        assert record.brand is UNRESOLVED

    def test_sale_keeps_raw(self):
        raw = freeze_record(Entity.SALES, {"invoiceid": "INV1", "quantity": "3.0", "unitprice": "$2.50"})
        sale = SaleRecord.from_raw(raw, position=0)
        assert sale.raw is raw
        assert sale.quantity == 3
        assert sale.unit_price == Decimal("2.50")
        assert sale.instant is UNRESOLVED
        assert sale.stock_code is UNRESOLVED

    def test_calendar_blank(self):
        blank = CalendarRecord.from_raw(freeze_record(Entity.CALENDAR, {"date": "  "}), position=0)
        garbage = CalendarRecord.from_raw(freeze_record(Entity.CALENDAR, {"date": "garbage"}), position=1)
        assert blank.is_blank
        assert not garbage.is_blank
        assert garbage.instant is UNRESOLVED

    def test_cleaned_extracts_positions(self, raw_extracts):
        cleaned = CleanedExtracts.from_raw(raw_extracts)
        assert [s.position for s in cleaned.sales] == list(range(len(raw_extracts.sales)))
