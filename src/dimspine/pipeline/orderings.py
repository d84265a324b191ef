"""
Pipeline orderings: where normalization happens relative to loading.

Both orderings share every conformance rule; they differ only in the step
that turns raw extracts into cleaned records.

    etl  normalize-then-load   raw extracts ──▶ clean ──▶ conform ──▶ publish
    elt  load-then-normalize   raw extracts ──▶ land raw_* ──▶ read back ──▶ clean ──▶ conform ──▶ publish

Landing is behind the ``LandingZone`` protocol so the load-then-normalize
ordering can be exercised without a database (``MemoryLanding``) or against
the SQLite ``Warehouse``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from dimspine.core.errors import ConfigError
from dimspine.core.logging import get_logger
from dimspine.domain.models import CleanedExtracts, Entity, RawExtracts, freeze_record

logger = get_logger(__name__)


@runtime_checkable
class LandingZone(Protocol):
    """Somewhere raw extracts can be written verbatim and read back."""

    def land(self, raw: RawExtracts) -> RawExtracts: ...


class MemoryLanding:
    """Landing zone that only copies records; keeps the last landed batch."""

    def __init__(self):
        self.landed: RawExtracts | None = None

    def land(self, raw: RawExtracts) -> RawExtracts:
        copied = {entity: tuple(freeze_record(entity, dict(r)) for r in raw.of(entity)) for entity in Entity}
        self.landed = RawExtracts(
            customers=copied[Entity.CUSTOMER],
            products=copied[Entity.PRODUCT],
            sales=copied[Entity.SALES],
            calendar=copied[Entity.CALENDAR],
        )
        return self.landed


class Ordering(ABC):
    """Strategy for producing cleaned records from raw extracts."""

    name: str = ""

    @abstractmethod
    def prepare(self, raw: RawExtracts, landing: LandingZone | None = None) -> CleanedExtracts:
        """Cleaned records for the conformance stages."""


class NormalizeThenLoad(Ordering):
    """Clean in memory; raw extracts are never persisted."""

    name = "etl"

    def prepare(self, raw: RawExtracts, landing: LandingZone | None = None) -> CleanedExtracts:
        return CleanedExtracts.from_raw(raw)


class LoadThenNormalize(Ordering):
    """Land raw extracts first, then clean what was read back."""

    name = "elt"

    def prepare(self, raw: RawExtracts, landing: LandingZone | None = None) -> CleanedExtracts:
        zone = landing if landing is not None else MemoryLanding()
        landed = zone.land(raw)
        logger.debug("ordering.landed", ordering=self.name, zone=type(zone).__name__)
        return CleanedExtracts.from_raw(landed)


ORDERINGS: dict[str, type[Ordering]] = {
    NormalizeThenLoad.name: NormalizeThenLoad,
    LoadThenNormalize.name: LoadThenNormalize,
}


def get_ordering(name: str) -> Ordering:
    """Ordering instance by name (``etl`` or ``elt``)."""
    try:
        return ORDERINGS[name.lower()]()
    except KeyError:
        raise ConfigError("ordering", name, f"Unknown ordering {name!r}; expected one of {sorted(ORDERINGS)}") from None
