"""
Reconciliation of two pipeline outputs over the same input.

Normalize-then-load and load-then-normalize must agree on every aggregate a
downstream report could compute. The checker reduces each run's facts to a
``FactMetrics`` snapshot and compares the two field by field. Per-product,
per-country and per-day revenue are matched by natural key (stock code,
country, calendar date) because surrogate keys are local to a run.

Checks report, they never correct. ``ReconciliationReport.raise_if_diverged``
is the explicit gate for callers that want a hard failure.

Examples:
    >>> report = ReconciliationChecker().compare(etl_output, elt_output)
    >>> report.is_reconciled
    True
    >>> [c.name for c in report.checks][:2]
    ['row_count', 'total_amount']
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from dimspine.core.errors import ReconciliationError
from dimspine.core.logging import get_logger
from dimspine.domain.numeric import round_money
from dimspine.pipeline.runner import RunOutput

logger = get_logger(__name__)

UNKNOWN_COUNTRY = "(unknown)"


class ReconciliationStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class FactMetrics:
    """Aggregates of one run's fact table, keyed by natural keys."""

    row_count: int
    total_amount: Decimal
    distinct_customers: int
    distinct_products: int
    total_quantity: int
    average_unit_price: Decimal | None
    revenue_by_product: dict[str, Decimal] = field(default_factory=dict)
    revenue_by_country: dict[str, Decimal] = field(default_factory=dict)
    revenue_by_date: dict[str, Decimal] = field(default_factory=dict)

    @classmethod
    def from_output(cls, output: RunOutput) -> FactMetrics:
        products = output.dimensions.product
        customers = output.dimensions.customer
        calendar = output.dimensions.calendar

        by_product: dict[str, Decimal] = defaultdict(Decimal)
        by_country: dict[str, Decimal] = defaultdict(Decimal)
        by_date: dict[str, Decimal] = defaultdict(Decimal)
        for fact in output.facts:
            by_product[products.get(fact.product_key).natural_key] += fact.total_amount
            country = customers.get(fact.customer_key).country or UNKNOWN_COUNTRY
            by_country[country] += fact.total_amount
            by_date[calendar.get(fact.calendar_key).date.isoformat()] += fact.total_amount

        facts = output.facts
        average = None
        if facts:
            average = round_money(sum((f.unit_price for f in facts), Decimal(0)) / len(facts))

        return cls(
            row_count=len(facts),
            total_amount=sum((f.total_amount for f in facts), Decimal(0)),
            distinct_customers=len({f.customer_key for f in facts}),
            distinct_products=len({f.product_key for f in facts}),
            total_quantity=sum(f.quantity for f in facts),
            average_unit_price=average,
            revenue_by_product=dict(by_product),
            revenue_by_country=dict(by_country),
            revenue_by_date=dict(by_date),
        )


@dataclass(frozen=True)
class ReconciliationCheck:
    """Outcome of comparing one metric between two runs."""

    name: str
    status: ReconciliationStatus
    left: Any
    right: Any
    delta: Any = None
    message: str = ""

    @property
    def passed(self) -> bool:
        return self.status == ReconciliationStatus.PASS

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "left": _jsonable(self.left),
            "right": _jsonable(self.right),
            "delta": _jsonable(self.delta),
            "message": self.message,
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class ReconciliationReport:
    left: str
    right: str
    checks: tuple[ReconciliationCheck, ...]

    @property
    def discrepancies(self) -> list[ReconciliationCheck]:
        return [c for c in self.checks if not c.passed]

    @property
    def is_reconciled(self) -> bool:
        return not self.discrepancies

    def to_dict(self) -> dict[str, Any]:
        return {
            "left": self.left,
            "right": self.right,
            "reconciled": self.is_reconciled,
            "checks": [c.to_dict() for c in self.checks],
        }

    def raise_if_diverged(self) -> None:
        if self.discrepancies:
            raise ReconciliationError(
                f"{self.left} and {self.right} diverged on {len(self.discrepancies)} check(s)",
                discrepancies=[c.message for c in self.discrepancies],
            )


class ReconciliationChecker:
    """
    Compare two ``RunOutput``s.

    ``tolerance`` is an absolute bound applied to monetary comparisons
    (total amount, average unit price and the revenue breakdowns).
    Counts always compare exactly.
    """

    def __init__(self, tolerance: Decimal | int | str = 0):
        self.tolerance = Decimal(tolerance)

    def _exact(self, name: str, left: int, right: int) -> ReconciliationCheck:
        if left == right:
            return ReconciliationCheck(name, ReconciliationStatus.PASS, left, right, 0, f"{name} matches ({left})")
        return ReconciliationCheck(
            name, ReconciliationStatus.FAIL, left, right, left - right, f"{name} differs: {left} vs {right}"
        )

    def _money(self, name: str, left: Decimal | None, right: Decimal | None) -> ReconciliationCheck:
        if left is None or right is None:
            status = ReconciliationStatus.PASS if left == right else ReconciliationStatus.FAIL
            return ReconciliationCheck(name, status, left, right, None, f"{name}: {left} vs {right}")
        delta = left - right
        if abs(delta) <= self.tolerance:
            return ReconciliationCheck(name, ReconciliationStatus.PASS, left, right, delta, f"{name} matches ({left})")
        return ReconciliationCheck(
            name, ReconciliationStatus.FAIL, left, right, delta, f"{name} differs by {delta}: {left} vs {right}"
        )

    def _breakdown(self, name: str, left: dict[str, Decimal], right: dict[str, Decimal]) -> ReconciliationCheck:
        deltas = {}
        for key in sorted(set(left) | set(right)):
            delta = left.get(key, Decimal(0)) - right.get(key, Decimal(0))
            if key not in left or key not in right or abs(delta) > self.tolerance:
                deltas[key] = delta
        if not deltas:
            return ReconciliationCheck(
                name, ReconciliationStatus.PASS, left, right, {}, f"{name} matches for {len(left)} key(s)"
            )
        shown = ", ".join(f"{k}: {v}" for k, v in list(deltas.items())[:5])
        return ReconciliationCheck(
            name, ReconciliationStatus.FAIL, left, right, deltas, f"{name} differs for {len(deltas)} key(s): {shown}"
        )

    def compare_metrics(
        self, left: FactMetrics, right: FactMetrics, left_name: str = "left", right_name: str = "right"
    ) -> ReconciliationReport:
        checks = (
            self._exact("row_count", left.row_count, right.row_count),
            self._money("total_amount", left.total_amount, right.total_amount),
            self._exact("distinct_customers", left.distinct_customers, right.distinct_customers),
            self._exact("distinct_products", left.distinct_products, right.distinct_products),
            self._exact("total_quantity", left.total_quantity, right.total_quantity),
            self._money("average_unit_price", left.average_unit_price, right.average_unit_price),
            self._breakdown("revenue_by_product", left.revenue_by_product, right.revenue_by_product),
            self._breakdown("revenue_by_country", left.revenue_by_country, right.revenue_by_country),
            self._breakdown("revenue_by_date", left.revenue_by_date, right.revenue_by_date),
        )
        report = ReconciliationReport(left=left_name, right=right_name, checks=checks)

        if report.is_reconciled:
            logger.info("reconcile.passed", left=left_name, right=right_name, checks=len(checks))
        else:
            logger.warning(
                "reconcile.failed",
                left=left_name,
                right=right_name,
                discrepancies=[c.name for c in report.discrepancies],
            )
        return report

    def compare(self, left: RunOutput, right: RunOutput) -> ReconciliationReport:
        return self.compare_metrics(
            FactMetrics.from_output(left),
            FactMetrics.from_output(right),
            left_name=left.ordering,
            right_name=right.ordering,
        )


__all__ = [
    "ReconciliationStatus",
    "FactMetrics",
    "ReconciliationCheck",
    "ReconciliationReport",
    "ReconciliationChecker",
]
