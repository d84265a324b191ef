"""Tests for dimspine.pipeline.facts: sale resolution, measures and quarantine routing."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from dimspine.core.quarantine import FACT_REASON_PRIORITY, QuarantineLog, QuarantineReason
from dimspine.domain.models import CleanedExtracts, Entity, RawExtracts, SaleRecord, freeze_record
from dimspine.pipeline import facts as facts_module
from dimspine.pipeline.dimensions import DimensionSet, build_dimensions
from dimspine.pipeline.facts import (
    AcceptedSale,
    FactResolver,
    RejectedSale,
    missing_reference_reason,
    resolve_sale,
)

LOAD_TS = datetime(2024, 1, 1, tzinfo=UTC)


@pytest.fixture()
def cleaned(raw_extracts) -> CleanedExtracts:
    return CleanedExtracts.from_raw(raw_extracts)


@pytest.fixture()
def dimensions(cleaned) -> DimensionSet:
    return build_dimensions(cleaned, QuarantineLog(run_id="dims"), max_workers=1)


def _sale(**fields) -> SaleRecord:
    values = {
        "invoiceid": "INVX",
        "stockcode": "P1",
        "customerid": "C100",
        "date": "2020-03-01 10:15:00",
        "quantity": "1",
        "unitprice": "9.99",
        "totalamount": "",
    }
    values.update(fields)
    return SaleRecord.from_raw(freeze_record(Entity.SALES, values), position=0)


# ── Reason priority ──────────────────────────────────────────────────────


class TestMissingReferenceReason:
    @pytest.mark.parametrize(
        "product, customer, calendar, expected",
        [
            (True, True, True, QuarantineReason.MISSING_PRODUCT_AND_CUSTOMER),
            (True, True, False, QuarantineReason.MISSING_PRODUCT_AND_CUSTOMER),
            (True, False, True, QuarantineReason.MISSING_PRODUCT),
            (False, True, True, QuarantineReason.MISSING_CUSTOMER),
            (False, False, True, QuarantineReason.MISSING_CALENDAR),
            (False, False, False, None),
        ],
    )
    def test_priority(self, product, customer, calendar, expected):
        assert missing_reference_reason(product, customer, calendar) is expected

    def test_other_ranks_last(self):
        assert missing_reference_reason(False, False, False, other=True) is QuarantineReason.OTHER
        assert missing_reference_reason(False, False, True, other=True) is QuarantineReason.MISSING_CALENDAR

    def test_follows_priority_table(self, monkeypatch):
        monkeypatch.setattr(facts_module, "FACT_REASON_PRIORITY", tuple(reversed(FACT_REASON_PRIORITY)))
        assert missing_reference_reason(True, True, False) is QuarantineReason.MISSING_CUSTOMER
        assert missing_reference_reason(True, False, True, other=True) is QuarantineReason.OTHER


# ── resolve_sale ─────────────────────────────────────────────────────────


class TestResolveSale:
    def test_accepted(self, dimensions):
        result = resolve_sale(_sale(quantity="2", totalamount="19.98"), dimensions)
        assert isinstance(result, AcceptedSale)
        assert result.calendar_key == 20200301101500
        assert result.product_key == dimensions.product.lookup("P1")
        assert result.customer_key == dimensions.customer.lookup("C100")
        assert result.total_amount == Decimal("19.98")

    def test_unknown_stock_code(self, dimensions):
        result = resolve_sale(_sale(stockcode="P9"), dimensions)
        assert isinstance(result, RejectedSale)
        assert result.reason is QuarantineReason.MISSING_PRODUCT
        assert result.reason.value == "missing product mapping"
        assert "P9" in result.detail

    def test_unknown_product_and_customer(self, dimensions):
        result = resolve_sale(_sale(stockcode="P9", customerid="C999", date="bad"), dimensions)
        assert result.reason is QuarantineReason.MISSING_PRODUCT_AND_CUSTOMER

    def test_unknown_customer(self, dimensions):
        assert resolve_sale(_sale(customerid="C999"), dimensions).reason is QuarantineReason.MISSING_CUSTOMER

    def test_blank_customer(self, dimensions):
        assert resolve_sale(_sale(customerid="  "), dimensions).reason is QuarantineReason.MISSING_CUSTOMER

    def test_unparseable_date(self, dimensions):
        assert resolve_sale(_sale(date="2020/03/01"), dimensions).reason is QuarantineReason.MISSING_CALENDAR

    def test_empty_invoice_is_other(self, dimensions):
        result = resolve_sale(_sale(invoiceid=""), dimensions)
        assert result.reason is QuarantineReason.OTHER
        assert "empty invoice id" in result.detail

    def test_empty_invoice_with_missing_reference_keeps_reference_reason(self, dimensions):
        assert resolve_sale(_sale(invoiceid="", stockcode="P9"), dimensions).reason is QuarantineReason.MISSING_PRODUCT

    def test_keys_match_natural_keys_case_sensitively(self, dimensions):
        assert resolve_sale(_sale(stockcode="p1"), dimensions).reason is QuarantineReason.MISSING_PRODUCT


class TestMeasures:
    def test_unit_price_falls_back_to_product_price(self, dimensions):
        result = resolve_sale(_sale(stockcode="P2", customerid="C200", unitprice="N/A"), dimensions)
        assert result.unit_price == Decimal("9.99")
        assert result.price_fallback is True
        assert result.total_amount == Decimal("9.99")

    def test_quantity_defaults_to_zero(self, dimensions):
        result = resolve_sale(_sale(quantity="abc", unitprice="5.00"), dimensions)
        assert result.quantity == 0
        assert result.quantity_defaulted is True
        assert result.total_amount == Decimal("0.00")

    def test_fractional_quantity_defaults_to_zero(self, dimensions):
        assert resolve_sale(_sale(quantity="2.5"), dimensions).quantity == 0

    def test_total_computed_when_missing(self, dimensions):
        result = resolve_sale(_sale(quantity="3", unitprice="$1.115", totalamount=""), dimensions)
        assert result.unit_price == Decimal("1.12")
        assert result.total_amount == Decimal("3.36")

    def test_zero_total_is_recomputed(self, dimensions):
        result = resolve_sale(_sale(quantity="2", unitprice="2.50", totalamount="0"), dimensions)
        assert result.total_amount == Decimal("5.00")

    def test_nonzero_total_kept(self, dimensions):
        result = resolve_sale(_sale(quantity="2", unitprice="2.50", totalamount="4.999"), dimensions)
        assert result.total_amount == Decimal("5.00")

    def test_negative_price_not_replaced(self, dimensions):
        result = resolve_sale(_sale(quantity="1", unitprice="-1.00"), dimensions)
        assert result.unit_price == Decimal("-1.00")

    def test_no_resolvable_price_is_other(self):
        raw = RawExtracts.from_rows(
            customers=[{"customerid": "C1"}],
            products=[{"stockcode": "P1", "unitprice": "free"}],
            sales=[{"invoiceid": "I1", "stockcode": "P1", "customerid": "C1", "date": "2020-01-01", "unitprice": ""}],
        )
        cleaned = CleanedExtracts.from_raw(raw)
        dims = build_dimensions(cleaned, QuarantineLog(run_id="x"))
        result = resolve_sale(cleaned.sales[0], dims)
        assert isinstance(result, RejectedSale)
        assert result.reason is QuarantineReason.OTHER


# ── FactResolver ─────────────────────────────────────────────────────────


class TestFactResolver:
    def test_sample_run(self, cleaned, dimensions, quarantine):
        facts = FactResolver(dimensions, quarantine).resolve(cleaned.sales, LOAD_TS)

        assert [f.invoice_id for f in facts] == ["INV1", "INV2", "INV7"]
        assert [f.surrogate_key for f in facts] == [1, 2, 3]
        assert all(f.load_timestamp == LOAD_TS for f in facts)
        assert quarantine.counts_by_reason("sales") == {
            "missing product mapping": 1,
            "missing product and customer mapping": 1,
            "missing customer mapping": 1,
            "other": 1,
            "missing calendar mapping": 1,
        }

    def test_rejections_appended_in_input_order(self, cleaned, dimensions, quarantine):
        FactResolver(dimensions, quarantine).resolve(cleaned.sales, LOAD_TS)
        assert [e.raw_record["invoiceid"] for e in quarantine.entries] == ["INV3", "INV4", "INV5", "", "INV6"]
        assert all(e.source_table == "sales" for e in quarantine.entries)

    def test_raw_record_untouched(self, cleaned, dimensions, quarantine):
        FactResolver(dimensions, quarantine).resolve(cleaned.sales, LOAD_TS)
        inv6 = next(e for e in quarantine.entries if e.raw_record["invoiceid"] == "INV6")
        assert inv6.raw_record["date"] == "not a date"
        assert inv6.raw_record["totalamount"] == "5.00"

    def test_conservation(self, raw_extracts, cleaned, dimensions, quarantine):
        facts = FactResolver(dimensions, quarantine).resolve(cleaned.sales, LOAD_TS)
        with_invoice = [r for r in raw_extracts.sales if r["invoiceid"].strip()]
        quarantined = [e for e in quarantine.entries if e.source_table == "sales" and e.raw_record["invoiceid"].strip()]
        assert len(facts) + len(quarantined) == len(with_invoice)

    def test_no_orphans(self, cleaned, dimensions, quarantine):
        for fact in FactResolver(dimensions, quarantine).resolve(cleaned.sales, LOAD_TS):
            assert fact.calendar_key in dimensions.calendar
            assert fact.product_key in dimensions.product
            assert fact.customer_key in dimensions.customer

    def test_order_independent(self, raw_extracts, dimensions):
        forward = CleanedExtracts.from_raw(raw_extracts).sales
        backward = CleanedExtracts.from_raw(
            RawExtracts(sales=tuple(reversed(raw_extracts.sales)))
        ).sales

        a = FactResolver(dimensions, QuarantineLog("a")).resolve(forward, LOAD_TS)
        b = FactResolver(dimensions, QuarantineLog("b")).resolve(backward, LOAD_TS)
        assert a == b

    def test_threaded_chunks_match_serial(self, cleaned, dimensions):
        serial = FactResolver(dimensions, QuarantineLog("s")).resolve(cleaned.sales, LOAD_TS)
        log = QuarantineLog("t")
        threaded = FactResolver(dimensions, log, max_workers=4, chunk_size=2).resolve(cleaned.sales, LOAD_TS)
        assert threaded == serial
        assert len(log) == 5

    def test_empty_input(self, dimensions, quarantine):
        assert FactResolver(dimensions, quarantine).resolve([], LOAD_TS) == ()
        assert len(quarantine) == 0
