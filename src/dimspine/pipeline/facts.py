"""
Fact resolution: cleaned sales rows -> fact rows or quarantine entries.

``resolve_sale`` is a pure function of one sale and the read-only
``DimensionSet``; no state is shared between rows, so the resolver can fan
chunks out to a thread pool and the outcome does not depend on which row is
evaluated first. Fact surrogate keys are assigned afterward from a stable
sort of the accepted rows.

Measures:
    quantity       parsed integer, else 0 (the row is still loaded)
    unit_price     parsed price, else the product's resolved price
    total_amount   parsed total when present and non-zero,
                   else round(quantity * unit_price, 2)

A sale is quarantined when any of its three lookups fails, when its invoice
id is empty, or when no unit price can be resolved. The recorded reason is
the highest-ranked one in ``FACT_REASON_PRIORITY``.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from itertools import chain

from dimspine.core.logging import get_logger
from dimspine.core.quarantine import FACT_REASON_PRIORITY, QuarantineLog, QuarantineReason
from dimspine.core.timestamps import utc_now
from dimspine.domain.models import Entity, FactRow, RawRecord, SaleRecord
from dimspine.domain.normalize import UNRESOLVED
from dimspine.domain.numeric import round_money
from dimspine.pipeline.dimensions import DimensionSet

logger = get_logger(__name__)


@dataclass(frozen=True)
class AcceptedSale:
    """A conformed sale awaiting its fact surrogate key."""

    position: int
    calendar_key: int
    product_key: int
    customer_key: int
    invoice_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    quantity_defaulted: bool = False
    price_fallback: bool = False

    def sort_key(self) -> tuple:
        return (self.invoice_id, self.calendar_key, self.product_key, self.customer_key, self.position)


@dataclass(frozen=True)
class RejectedSale:
    position: int
    raw: RawRecord
    reason: QuarantineReason
    detail: str


Resolution = AcceptedSale | RejectedSale


def missing_reference_reason(
    product: bool, customer: bool, calendar: bool, *, other: bool = False
) -> QuarantineReason | None:
    """Highest-ranked applicable reason in ``FACT_REASON_PRIORITY``, or None."""
    applies = {
        QuarantineReason.MISSING_PRODUCT_AND_CUSTOMER: product and customer,
        QuarantineReason.MISSING_PRODUCT: product,
        QuarantineReason.MISSING_CUSTOMER: customer,
        QuarantineReason.MISSING_CALENDAR: calendar,
        QuarantineReason.OTHER: other,
    }
    return next((reason for reason in FACT_REASON_PRIORITY if applies[reason]), None)


def resolve_sale(sale: SaleRecord, dimensions: DimensionSet) -> Resolution:
    """Resolve one sale against the dimension lookups."""
    product_key = None if sale.stock_code is UNRESOLVED else dimensions.product.lookup(sale.stock_code)
    customer_key = None if sale.customer_id is UNRESOLVED else dimensions.customer.lookup(sale.customer_id)
    calendar_key = None
    if sale.instant is not UNRESOLVED and sale.instant.key in dimensions.calendar:
        calendar_key = sale.instant.key

    problems = []
    if product_key is None:
        problems.append(f"stock code {sale.raw.get('stockcode', '')!r} not in product dimension")
    if customer_key is None:
        problems.append(f"customer id {sale.raw.get('customerid', '')!r} not in customer dimension")
    if calendar_key is None:
        problems.append(f"date {sale.raw.get('date', '')!r} not in calendar dimension")
    if sale.invoice_id is UNRESOLVED:
        problems.append("empty invoice id")

    reason = missing_reference_reason(
        product_key is None,
        customer_key is None,
        calendar_key is None,
        other=sale.invoice_id is UNRESOLVED,
    )
    if reason is not None:
        return RejectedSale(sale.position, sale.raw, reason, "; ".join(problems))

    price_fallback = sale.unit_price is UNRESOLVED
    if price_fallback:
        unit_price = dimensions.product.get(product_key).unit_price
        if unit_price is None:
            return RejectedSale(
                sale.position,
                sale.raw,
                QuarantineReason.OTHER,
                f"no resolvable unit price for stock code {sale.stock_code!r}",
            )
    else:
        unit_price = sale.unit_price
    unit_price = round_money(unit_price)

    quantity_defaulted = sale.quantity is UNRESOLVED
    quantity = 0 if quantity_defaulted else sale.quantity

    if sale.total_amount is not UNRESOLVED and sale.total_amount != 0:
        total_amount = round_money(sale.total_amount)
    else:
        total_amount = round_money(quantity * unit_price)

    return AcceptedSale(
        position=sale.position,
        calendar_key=calendar_key,
        product_key=product_key,
        customer_key=customer_key,
        invoice_id=sale.invoice_id,
        quantity=quantity,
        unit_price=unit_price,
        total_amount=total_amount,
        quantity_defaulted=quantity_defaulted,
        price_fallback=price_fallback,
    )


def _chunks(items: Sequence[SaleRecord], size: int) -> list[Sequence[SaleRecord]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class FactResolver:
    """
    Resolve every sale of a run against a fully built ``DimensionSet``.

    Accepted rows become ``FactRow`` objects keyed 1..N in a stable order;
    rejected rows are appended to the run's ``QuarantineLog``.
    """

    def __init__(
        self,
        dimensions: DimensionSet,
        quarantine: QuarantineLog,
        *,
        max_workers: int = 1,
        chunk_size: int = 5000,
    ):
        self.dimensions = dimensions
        self.quarantine = quarantine
        self.max_workers = max(1, max_workers)
        self.chunk_size = max(1, chunk_size)

    def _resolve_chunk(self, chunk: Sequence[SaleRecord]) -> list[Resolution]:
        return [resolve_sale(sale, self.dimensions) for sale in chunk]

    def resolve_all(self, sales: Sequence[SaleRecord]) -> list[Resolution]:
        """Resolutions for every sale; order across chunks is not meaningful."""
        chunks = _chunks(sales, self.chunk_size)
        if self.max_workers == 1 or len(chunks) <= 1:
            return list(chain.from_iterable(self._resolve_chunk(c) for c in chunks))
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="facts") as pool:
            return list(chain.from_iterable(pool.map(self._resolve_chunk, chunks)))

    def resolve(self, sales: Sequence[SaleRecord], load_timestamp: datetime | None = None) -> tuple[FactRow, ...]:
        load_timestamp = load_timestamp or utc_now()
        resolutions = self.resolve_all(sales)

        accepted = sorted((r for r in resolutions if isinstance(r, AcceptedSale)), key=AcceptedSale.sort_key)
        rejected = sorted((r for r in resolutions if isinstance(r, RejectedSale)), key=lambda r: r.position)

        for r in rejected:
            self.quarantine.append(Entity.SALES.value, r.raw, r.reason, r.detail)

        facts = tuple(
            FactRow(
                surrogate_key=index,
                calendar_key=a.calendar_key,
                product_key=a.product_key,
                customer_key=a.customer_key,
                invoice_id=a.invoice_id,
                quantity=a.quantity,
                unit_price=a.unit_price,
                total_amount=a.total_amount,
                load_timestamp=load_timestamp,
            )
            for index, a in enumerate(accepted, start=1)
        )

        logger.info(
            "facts.resolved",
            input_rows=len(sales),
            accepted=len(facts),
            quarantined=len(rejected),
            quantity_defaulted=sum(1 for a in accepted if a.quantity_defaulted),
            price_fallbacks=sum(1 for a in accepted if a.price_fallback),
        )
        return facts
