"""
Record models for the star schema (stdlib dataclasses).

Three layers, one per stage of the pipeline:

    raw          RawRecord            field name -> untyped text, immutable
    cleaned      *Record              normalized values or UNRESOLVED
    conformed    *Row / FactRow       surrogate-keyed warehouse rows

Cleaned records keep their input ``position`` so that "first in input
order" tie-breaks stay stable however the records were produced.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from dimspine.domain.normalize import (
    UNRESOLVED,
    Unresolved,
    normalize_key,
    normalize_title,
)
from dimspine.domain.numeric import parse_decimal, parse_integer
from dimspine.domain.temporal import ParsedInstant, parse_date, parse_instant

RawRecord = Mapping[str, str]


class Entity(str, Enum):
    """Source entity types and their extract tags."""

    CUSTOMER = "customer"
    PRODUCT = "product"
    SALES = "sales"
    CALENDAR = "calendar"


SOURCE_FIELDS: dict[Entity, tuple[str, ...]] = {
    Entity.CUSTOMER: ("customerid", "customername", "country", "signupdate"),
    Entity.PRODUCT: ("stockcode", "description", "unitprice", "category", "brand"),
    Entity.SALES: (
        "invoiceid",
        "stockcode",
        "description",
        "customerid",
        "date",
        "quantity",
        "unitprice",
        "totalamount",
    ),
    Entity.CALENDAR: ("date", "year", "month", "day", "weekday"),
}


def freeze_record(entity: Entity, values: Mapping[str, str | None]) -> RawRecord:
    """
    Project ``values`` onto the entity's fixed field names.

    Missing fields and ``None`` become empty text; unknown fields are
    dropped. The result is a read-only mapping.
    """
    return MappingProxyType({name: "" if values.get(name) is None else str(values[name]) for name in SOURCE_FIELDS[entity]})


@dataclass(frozen=True)
class RawExtracts:
    """One run's input: the four raw extracts."""

    customers: tuple[RawRecord, ...] = ()
    products: tuple[RawRecord, ...] = ()
    sales: tuple[RawRecord, ...] = ()
    calendar: tuple[RawRecord, ...] = ()

    @classmethod
    def from_rows(
        cls,
        customers: Sequence[Mapping[str, str | None]] = (),
        products: Sequence[Mapping[str, str | None]] = (),
        sales: Sequence[Mapping[str, str | None]] = (),
        calendar: Sequence[Mapping[str, str | None]] = (),
    ) -> RawExtracts:
        return cls(
            customers=tuple(freeze_record(Entity.CUSTOMER, r) for r in customers),
            products=tuple(freeze_record(Entity.PRODUCT, r) for r in products),
            sales=tuple(freeze_record(Entity.SALES, r) for r in sales),
            calendar=tuple(freeze_record(Entity.CALENDAR, r) for r in calendar),
        )

    def of(self, entity: Entity) -> tuple[RawRecord, ...]:
        return {
            Entity.CUSTOMER: self.customers,
            Entity.PRODUCT: self.products,
            Entity.SALES: self.sales,
            Entity.CALENDAR: self.calendar,
        }[entity]


# =============================================================================
# Cleaned records
# =============================================================================


@dataclass(frozen=True)
class CustomerRecord:
    position: int
    natural_key: str | Unresolved
    name: str | Unresolved
    country: str | Unresolved
    signup_date: date | Unresolved

    @classmethod
    def from_raw(cls, raw: RawRecord, position: int) -> CustomerRecord:
        return cls(
            position=position,
            natural_key=normalize_key(raw.get("customerid")),
            name=normalize_title(raw.get("customername")),
            country=normalize_title(raw.get("country")),
            signup_date=parse_date(raw.get("signupdate")),
        )


@dataclass(frozen=True)
class ProductRecord:
    position: int
    natural_key: str | Unresolved
    description: str | Unresolved
    unit_price: Decimal | Unresolved
    category: str | Unresolved
    brand: str | Unresolved

    @classmethod
    def from_raw(cls, raw: RawRecord, position: int) -> ProductRecord:
        return cls(
            position=position,
            natural_key=normalize_key(raw.get("stockcode")),
            description=normalize_title(raw.get("description")),
            unit_price=parse_decimal(raw.get("unitprice")),
            category=normalize_title(raw.get("category")),
            brand=normalize_title(raw.get("brand")),
        )


@dataclass(frozen=True)
class SaleRecord:
    """A cleaned sales row; ``raw`` is kept for quarantine."""

    position: int
    raw: RawRecord
    invoice_id: str | Unresolved
    stock_code: str | Unresolved
    customer_id: str | Unresolved
    instant: ParsedInstant | Unresolved
    quantity: int | Unresolved
    unit_price: Decimal | Unresolved
    total_amount: Decimal | Unresolved

    @classmethod
    def from_raw(cls, raw: RawRecord, position: int) -> SaleRecord:
        return cls(
            position=position,
            raw=raw,
            invoice_id=normalize_key(raw.get("invoiceid")),
            stock_code=normalize_key(raw.get("stockcode")),
            customer_id=normalize_key(raw.get("customerid")),
            instant=parse_instant(raw.get("date")),
            quantity=parse_integer(raw.get("quantity")),
            unit_price=parse_decimal(raw.get("unitprice")),
            total_amount=parse_decimal(raw.get("totalamount")),
        )


@dataclass(frozen=True)
class CalendarRecord:
    position: int
    raw: RawRecord
    instant: ParsedInstant | Unresolved

    @property
    def is_blank(self) -> bool:
        return not (self.raw.get("date") or "").strip()

    @classmethod
    def from_raw(cls, raw: RawRecord, position: int) -> CalendarRecord:
        return cls(position=position, raw=raw, instant=parse_instant(raw.get("date")))


@dataclass(frozen=True)
class CleanedExtracts:
    """All four extracts after field normalization."""

    customers: tuple[CustomerRecord, ...]
    products: tuple[ProductRecord, ...]
    sales: tuple[SaleRecord, ...]
    calendar: tuple[CalendarRecord, ...]

    @classmethod
    def from_raw(cls, raw: RawExtracts) -> CleanedExtracts:
        return cls(
            customers=tuple(CustomerRecord.from_raw(r, i) for i, r in enumerate(raw.customers)),
            products=tuple(ProductRecord.from_raw(r, i) for i, r in enumerate(raw.products)),
            sales=tuple(SaleRecord.from_raw(r, i) for i, r in enumerate(raw.sales)),
            calendar=tuple(CalendarRecord.from_raw(r, i) for i, r in enumerate(raw.calendar)),
        )


# =============================================================================
# Conformed rows
# =============================================================================


@dataclass(frozen=True)
class CustomerRow:
    surrogate_key: int
    natural_key: str
    name: str | None
    country: str | None
    signup_date: date | None


@dataclass(frozen=True)
class ProductRow:
    surrogate_key: int
    natural_key: str
    description: str | None
    unit_price: Decimal | None
    category: str | None
    brand: str | None


@dataclass(frozen=True)
class CalendarRow:
    surrogate_key: int
    instant: datetime
    date: date
    time: time
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    weekday_name: str
    is_weekend: bool
    quarter: int

    @property
    def natural_key(self) -> datetime:
        return self.instant

    @classmethod
    def from_parsed(cls, parsed: ParsedInstant) -> CalendarRow:
        p = parsed.truncated()
        return cls(
            surrogate_key=p.key,
            instant=p.instant,
            date=p.date,
            time=p.time,
            year=p.year,
            month=p.month,
            day=p.day,
            hour=p.hour,
            minute=p.minute,
            second=p.second,
            weekday_name=p.weekday_name,
            is_weekend=p.is_weekend,
            quarter=p.quarter,
        )


@dataclass(frozen=True)
class FactRow:
    surrogate_key: int
    calendar_key: int
    product_key: int
    customer_key: int
    invoice_id: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    load_timestamp: datetime


__all__ = [
    "UNRESOLVED",
    "RawRecord",
    "Entity",
    "SOURCE_FIELDS",
    "freeze_record",
    "RawExtracts",
    "CustomerRecord",
    "ProductRecord",
    "SaleRecord",
    "CalendarRecord",
    "CleanedExtracts",
    "CustomerRow",
    "ProductRow",
    "CalendarRow",
    "FactRow",
]
