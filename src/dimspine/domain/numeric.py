"""
Numeric and currency parsing.

``parse_decimal`` reads values such as ``"$1,234.50"``, ``" 9.99 GBP"`` or
``"-3"``. Everything except digits, sign characters and the decimal point is
discarded first; what is left must be exactly one optionally-signed decimal
number. ``"N/A"``, ``"1.2.3"`` and ``"12-3"`` are unresolved.

The median fallback for product prices is a separate, explicit phase:
``MedianPriceTable.from_prices`` runs once per pipeline run over the product
extract, and every later consumer only calls ``lookup``.
"""

from __future__ import annotations

import re
import statistics
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType

from dimspine.domain.normalize import UNRESOLVED, Unresolved

_NOISE = re.compile(r"[^0-9+\-.]")
_SIGNED_DECIMAL = re.compile(r"[+-]?\d+(?:\.\d+)?")

CENT = Decimal("0.01")


def parse_decimal(raw: str | None) -> Decimal | Unresolved:
    """Extract a signed decimal from noisy text."""
    if raw is None:
        return UNRESOLVED
    stripped = _NOISE.sub("", str(raw))
    if not _SIGNED_DECIMAL.fullmatch(stripped):
        return UNRESOLVED
    try:
        return Decimal(stripped)
    except InvalidOperation:
        return UNRESOLVED


def parse_integer(raw: str | None) -> int | Unresolved:
    """Parse an integral count; ``"3.0"`` is 3, ``"2.5"`` is unresolved."""
    value = parse_decimal(raw)
    if value is UNRESOLVED:
        return UNRESOLVED
    if value != value.to_integral_value():
        return UNRESOLVED
    return int(value)


def round_money(value: Decimal) -> Decimal:
    """Round half away from zero to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def median(values: Iterable[Decimal]) -> Decimal | Unresolved:
    """Median with midpoint interpolation for even-sized inputs."""
    ordered = sorted(values)
    if not ordered:
        return UNRESOLVED
    return statistics.median(ordered)


@dataclass(frozen=True)
class MedianPriceTable:
    """
    Per-product and overall median of valid parsed prices.

    Frozen once built. ``lookup`` prefers the product's own median (over
    all its source rows, duplicates included) and falls back to the median
    across every product.
    """

    by_product: Mapping[str, Decimal] = field(default_factory=lambda: MappingProxyType({}))
    overall: Decimal | Unresolved = UNRESOLVED

    @classmethod
    def from_prices(cls, prices: Iterable[tuple[str, Decimal]]) -> MedianPriceTable:
        """Build from already-parsed ``(stock_code, price)`` pairs."""
        grouped: dict[str, list[Decimal]] = defaultdict(list)
        everything: list[Decimal] = []
        for code, price in prices:
            grouped[code].append(price)
            everything.append(price)

        by_product = {code: median(values) for code, values in grouped.items()}
        return cls(by_product=MappingProxyType(by_product), overall=median(everything))

    def lookup(self, stock_code: str) -> Decimal | Unresolved:
        return self.by_product.get(stock_code, self.overall)
