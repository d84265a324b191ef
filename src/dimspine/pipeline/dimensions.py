"""
Dimension builders: cleaned records -> deduplicated, surrogate-keyed tables.

Key assignment is a pure function of the surviving natural keys: sort them,
number them from 1. Re-running on the same input yields the same keys, and
no builder shares a counter with another, so the three builders can run in
parallel. ``build_dimensions`` does exactly that and returns only once all
three are done; the fact resolver never sees a half-built lookup.

Survivor rules per natural key:
- customer: most recent non-null signup date, then first in input order
- product: first in input order
- calendar: one row per second (sub-second instants collapse)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Hashable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, time
from typing import Generic, Protocol, TypeVar

from dimspine.core.errors import DimensionBuildError
from dimspine.core.logging import get_logger
from dimspine.core.quarantine import QuarantineLog, QuarantineReason
from dimspine.domain.models import (
    CalendarRecord,
    CalendarRow,
    CleanedExtracts,
    CustomerRecord,
    CustomerRow,
    Entity,
    ProductRecord,
    ProductRow,
    SaleRecord,
)
from dimspine.domain.normalize import UNRESOLVED, or_none
from dimspine.domain.numeric import MedianPriceTable, round_money
from dimspine.domain.temporal import ParsedInstant

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)


class _KeyedRow(Protocol):
    @property
    def surrogate_key(self) -> int: ...

    @property
    def natural_key(self) -> Hashable: ...


RowT = TypeVar("RowT", bound=_KeyedRow)


def assign_surrogate_keys(natural_keys: Iterable[K]) -> dict[K, int]:
    """Number the distinct natural keys 1..N in ascending order."""
    return {key: index for index, key in enumerate(sorted(set(natural_keys)), start=1)}


class DimensionTable(Generic[RowT]):
    """A built dimension: rows plus natural-key and surrogate-key lookups."""

    def __init__(self, name: str, rows: Iterable[RowT], dropped: int = 0):
        self.name = name
        self.rows: tuple[RowT, ...] = tuple(sorted(rows, key=lambda r: r.surrogate_key))
        self.dropped = dropped
        self._by_natural: dict[Hashable, int] = {r.natural_key: r.surrogate_key for r in self.rows}
        self._by_key: dict[int, RowT] = {r.surrogate_key: r for r in self.rows}

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, surrogate_key: object) -> bool:
        return surrogate_key in self._by_key

    def __repr__(self) -> str:
        return f"DimensionTable(name={self.name!r}, rows={len(self.rows)}, dropped={self.dropped})"

    def lookup(self, natural_key: Hashable) -> int | None:
        """Surrogate key for a natural key, or None."""
        return self._by_natural.get(natural_key)

    def get(self, surrogate_key: int) -> RowT | None:
        return self._by_key.get(surrogate_key)

    def keys(self) -> frozenset[int]:
        return frozenset(self._by_key)


@dataclass(frozen=True)
class DimensionSet:
    """The three lookups the fact resolver joins against."""

    customer: DimensionTable[CustomerRow]
    product: DimensionTable[ProductRow]
    calendar: DimensionTable[CalendarRow]
    medians: MedianPriceTable

    def row_counts(self) -> dict[str, int]:
        return {
            "customer": len(self.customer),
            "product": len(self.product),
            "calendar": len(self.calendar),
        }


def _require_rows(name: str, rows: Sequence, reason: str) -> None:
    if not rows:
        raise DimensionBuildError(name, reason)


def _log_dropped(name: str, dropped: int, total: int) -> None:
    if dropped:
        logger.warning("dimension.rows_dropped", dimension=name, dropped=dropped, total=total, reason="empty natural key")


# =============================================================================
# Customer
# =============================================================================


def _customer_rank(record: CustomerRecord) -> tuple[bool, int, int]:
    """Sort key: dated before undated, newest first, then input order."""
    if record.signup_date is UNRESOLVED:
        return (True, 0, record.position)
    return (False, -record.signup_date.toordinal(), record.position)


def build_customer_dimension(records: Sequence[CustomerRecord]) -> DimensionTable[CustomerRow]:
    keyed = [r for r in records if r.natural_key is not UNRESOLVED]
    dropped = len(records) - len(keyed)
    _log_dropped("customer", dropped, len(records))

    groups: dict[str, list[CustomerRecord]] = defaultdict(list)
    for record in keyed:
        groups[record.natural_key].append(record)

    survivors = {key: min(group, key=_customer_rank) for key, group in groups.items()}
    surrogate = assign_surrogate_keys(survivors)
    rows = [
        CustomerRow(
            surrogate_key=surrogate[key],
            natural_key=key,
            name=or_none(r.name),
            country=or_none(r.country),
            signup_date=or_none(r.signup_date),
        )
        for key, r in survivors.items()
    ]
    _require_rows("customer", rows, "no customer rows with a non-empty customer id")

    logger.info(
        "dimension.built",
        dimension="customer",
        rows=len(rows),
        duplicates_removed=len(keyed) - len(rows),
        dropped=dropped,
    )
    return DimensionTable("customer", rows, dropped=dropped)


# =============================================================================
# Product
# =============================================================================


def build_product_dimension(
    records: Sequence[ProductRecord],
    medians: MedianPriceTable,
) -> DimensionTable[ProductRow]:
    keyed = [r for r in records if r.natural_key is not UNRESOLVED]
    dropped = len(records) - len(keyed)
    _log_dropped("product", dropped, len(records))

    survivors: dict[str, ProductRecord] = {}
    for record in sorted(keyed, key=lambda r: r.position):
        survivors.setdefault(record.natural_key, record)

    surrogate = assign_surrogate_keys(survivors)
    rows = []
    fallbacks = 0
    for key, r in survivors.items():
        price = r.unit_price
        if price is UNRESOLVED:
            price = medians.lookup(key)
            fallbacks += 1
        rows.append(
            ProductRow(
                surrogate_key=surrogate[key],
                natural_key=key,
                description=or_none(r.description),
                unit_price=None if price is UNRESOLVED else round_money(price),
                category=or_none(r.category),
                brand=or_none(r.brand),
            )
        )
    _require_rows("product", rows, "no product rows with a non-empty stock code")

    logger.info(
        "dimension.built",
        dimension="product",
        rows=len(rows),
        duplicates_removed=len(keyed) - len(rows),
        dropped=dropped,
        median_fallbacks=fallbacks,
        overall_median=str(or_none(medians.overall)),
    )
    return DimensionTable("product", rows, dropped=dropped)


# =============================================================================
# Calendar
# =============================================================================


def collect_instants(
    calendar: Sequence[CalendarRecord],
    sales: Sequence[SaleRecord],
    customers: Sequence[CustomerRecord] = (),
    quarantine: QuarantineLog | None = None,
) -> tuple[list[ParsedInstant], int]:
    """
    Every parseable instant observed in any extract that carries a date.

    Calendar extract rows with a non-empty, unparseable date are
    quarantined; blank ones are only counted. Returns ``(instants, dropped)``.
    """
    instants: list[ParsedInstant] = []
    dropped = 0
    for record in calendar:
        if record.instant is not UNRESOLVED:
            instants.append(record.instant)
        elif record.is_blank:
            dropped += 1
        elif quarantine is not None:
            quarantine.append(
                Entity.CALENDAR.value,
                record.raw,
                QuarantineReason.INVALID_TIMESTAMP,
                detail=f"unparseable date {record.raw.get('date', '')!r}",
            )
    instants.extend(s.instant for s in sales if s.instant is not UNRESOLVED)
    instants.extend(
        ParsedInstant(datetime.combine(c.signup_date, time()))
        for c in customers
        if c.signup_date is not UNRESOLVED
    )
    return instants, dropped


def build_calendar_dimension(instants: Iterable[ParsedInstant], dropped: int = 0) -> DimensionTable[CalendarRow]:
    rows_by_key: dict[int, CalendarRow] = {}
    observed = 0
    for parsed in instants:
        observed += 1
        row = CalendarRow.from_parsed(parsed)
        rows_by_key.setdefault(row.surrogate_key, row)

    _log_dropped("calendar", dropped, observed + dropped)
    rows = list(rows_by_key.values())
    _require_rows("calendar", rows, "no parseable timestamps in any extract")

    logger.info("dimension.built", dimension="calendar", rows=len(rows), instants_observed=observed, dropped=dropped)
    return DimensionTable("calendar", rows, dropped=dropped)


# =============================================================================
# All three, in parallel
# =============================================================================


def build_dimensions(
    cleaned: CleanedExtracts,
    quarantine: QuarantineLog,
    *,
    max_workers: int = 3,
    include_signup_dates: bool = True,
) -> DimensionSet:
    """
    Build customer, product and calendar dimensions.

    The median price table is computed first and frozen; the builders then
    run concurrently. Waiting on every future is the join barrier: if any
    builder raises ``DimensionBuildError`` it propagates from here and no
    fact is resolved.
    """
    medians = MedianPriceTable.from_prices(
        (r.natural_key, r.unit_price)
        for r in cleaned.products
        if r.natural_key is not UNRESOLVED and r.unit_price is not UNRESOLVED
    )
    instants, calendar_dropped = collect_instants(
        cleaned.calendar,
        cleaned.sales,
        cleaned.customers if include_signup_dates else (),
        quarantine,
    )

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, 3)), thread_name_prefix="dimension") as pool:
        customer_future = pool.submit(build_customer_dimension, cleaned.customers)
        product_future = pool.submit(build_product_dimension, cleaned.products, medians)
        calendar_future = pool.submit(build_calendar_dimension, instants, calendar_dropped)

        customer = customer_future.result()
        product = product_future.result()
        calendar = calendar_future.result()

    return DimensionSet(customer=customer, product=product, calendar=calendar, medians=medians)
