"""
Pipeline runner: one ordering, one run, start to publish.

Manifesto:
    A run either publishes a complete star schema or publishes nothing.
    The runner owns the lifecycle (run id, log context, timing, ledger)
    so the conformance stages stay pure functions of their inputs.

Architecture:
    ::

        RawExtracts
            │
            ▼
        Ordering.prepare()          etl: clean in memory
            │                       elt: land raw_* ▶ read back ▶ clean
            ▼
        build_dimensions()          customer ║ product ║ calendar  (join barrier)
            │
            ▼
        FactResolver.resolve()      chunks in a thread pool
            │
            ▼
        Warehouse.publish()         one transaction: swap tables + quarantine + ledger

Examples:
    >>> pipeline = Pipeline("etl", load_settings(max_workers=1))
    >>> result = pipeline.run(raw)
    >>> result.status
    <PipelineStatus.COMPLETED: 'completed'>
    >>> result.output.summary()["facts"]
    3
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from dimspine.core.errors import DimspineError
from dimspine.core.logging import LogContext, get_logger
from dimspine.core.quarantine import QuarantineEntry, QuarantineLog
from dimspine.core.settings import DimspineSettings, load_settings
from dimspine.core.timestamps import generate_ulid, utc_now
from dimspine.domain.models import FactRow, RawExtracts
from dimspine.pipeline.dimensions import DimensionSet, build_dimensions
from dimspine.pipeline.facts import FactResolver
from dimspine.pipeline.orderings import LandingZone, Ordering, get_ordering
from dimspine.storage.warehouse import RunRecord, Warehouse

logger = get_logger(__name__)


class PipelineStatus(str, Enum):
    """Pipeline execution status."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class RunOutput:
    """Everything one successful run produced."""

    run_id: str
    ordering: str
    dimensions: DimensionSet
    facts: tuple[FactRow, ...]
    quarantine: tuple[QuarantineEntry, ...]
    started_at: datetime
    completed_at: datetime

    def quarantine_counts(self, source_table: str | None = None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in self.quarantine:
            if source_table is None or entry.source_table == source_table:
                counts[entry.reason.value] = counts.get(entry.reason.value, 0) + 1
        return counts

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "ordering": self.ordering,
            **self.dimensions.row_counts(),
            "facts": len(self.facts),
            "quarantined": len(self.quarantine),
            "quarantined_by_reason": self.quarantine_counts(),
        }


@dataclass
class PipelineResult:
    """Result of a pipeline execution."""

    status: PipelineStatus
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    output: RunOutput | None = None
    run_id: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Duration in seconds if completed."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.COMPLETED


class Pipeline:
    """
    Runs one ordering end to end.

    ``warehouse`` is optional: without it the run stays in memory (the
    load-then-normalize ordering lands into a ``MemoryLanding``) and nothing
    is published. With it, the warehouse is also the landing zone.
    """

    def __init__(
        self,
        ordering: Ordering | str,
        settings: DimspineSettings | None = None,
        warehouse: Warehouse | None = None,
        landing: LandingZone | None = None,
    ):
        self.ordering = get_ordering(ordering) if isinstance(ordering, str) else ordering
        self.settings = settings or load_settings()
        self.warehouse = warehouse
        self.landing = landing if landing is not None else warehouse

    def execute(self, raw: RawExtracts, run_id: str | None = None) -> RunOutput:
        """Run every stage; raises ``DimspineError`` on failure."""
        run_id = run_id or generate_ulid()
        started_at = utc_now()
        name = self.ordering.name

        with LogContext(run_id=run_id, ordering=name):
            logger.info(
                "run.started",
                customers=len(raw.customers),
                products=len(raw.products),
                sales=len(raw.sales),
                calendar=len(raw.calendar),
            )
            quarantine = QuarantineLog(run_id)
            try:
                cleaned = self.ordering.prepare(raw, self.landing)
                dimensions = build_dimensions(
                    cleaned,
                    quarantine,
                    max_workers=self.settings.max_workers,
                    include_signup_dates=self.settings.include_signup_dates_in_calendar,
                )
                resolver = FactResolver(
                    dimensions,
                    quarantine,
                    max_workers=self.settings.max_workers,
                    chunk_size=self.settings.fact_chunk_size,
                )
                facts = resolver.resolve(cleaned.sales, load_timestamp=started_at)
            except DimspineError as exc:
                exc.with_context(run_id=run_id, ordering=name)
                raise

            output = RunOutput(
                run_id=run_id,
                ordering=name,
                dimensions=dimensions,
                facts=facts,
                quarantine=quarantine.entries,
                started_at=started_at,
                completed_at=utc_now(),
            )

            if self.warehouse is not None:
                self.warehouse.publish(
                    name,
                    customers=dimensions.customer.rows,
                    products=dimensions.product.rows,
                    calendar=dimensions.calendar.rows,
                    facts=facts,
                    quarantine=output.quarantine,
                    run=RunRecord(
                        run_id=run_id,
                        ordering=name,
                        status=PipelineStatus.COMPLETED.value,
                        started_at=started_at,
                        completed_at=output.completed_at,
                        metrics=output.summary(),
                    ),
                )

            logger.info("run.completed", **{k: v for k, v in output.summary().items() if k not in ("run_id", "ordering")})
            return output

    def run(self, raw: RawExtracts) -> PipelineResult:
        """Like ``execute`` but returns a FAILED result instead of raising."""
        run_id = generate_ulid()
        started_at = utc_now()
        try:
            output = self.execute(raw, run_id=run_id)
        except DimspineError as exc:
            error = exc.to_dict()
            logger.error("run.failed", run_id=run_id, ordering=self.ordering.name, **error)
            completed_at = utc_now()
            if self.warehouse is not None:
                self.warehouse.record_run(
                    RunRecord(
                        run_id=run_id,
                        ordering=self.ordering.name,
                        status=PipelineStatus.FAILED.value,
                        started_at=started_at,
                        completed_at=completed_at,
                        error=error,
                    )
                )
            return PipelineResult(
                status=PipelineStatus.FAILED,
                started_at=started_at,
                completed_at=completed_at,
                error=str(exc),
                metrics={"error": error},
                run_id=run_id,
            )

        return PipelineResult(
            status=PipelineStatus.COMPLETED,
            started_at=started_at,
            completed_at=output.completed_at,
            metrics=output.summary(),
            output=output,
            run_id=run_id,
        )


def run_orderings(
    raw: RawExtracts,
    orderings: Iterable[str] = ("etl", "elt"),
    settings: DimspineSettings | None = None,
    warehouse: Warehouse | None = None,
) -> dict[str, PipelineResult]:
    """Run several orderings over the same input, one after another."""
    settings = settings or load_settings()
    results = {}
    for name in orderings:
        results[name] = Pipeline(name, settings, warehouse).run(raw)
        if not results[name].succeeded:
            logger.warning("runner.stopped", failed_at=name)
            break
    return results


__all__ = [
    "PipelineStatus",
    "PipelineResult",
    "RunOutput",
    "Pipeline",
    "run_orderings",
]
