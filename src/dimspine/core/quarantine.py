"""
Append-only quarantine for rows that failed conformance.

A sale whose product, customer or calendar reference cannot be resolved is
not loaded and not dropped: it becomes a ``QuarantineEntry`` carrying the
untouched raw record, the source table tag and a human-readable reason.
Calendar extract rows whose timestamp cannot be parsed land here too.

Manifesto:
    Every quarantine entry should answer:
    - **What?** raw_record, exactly as extracted, for replay
    - **Where from?** source_table (``sales``, ``calendar``)
    - **Why?** reason (aggregatable) plus detail (specific)
    - **When / which run?** created_at, run_id

    Rejection is terminal for the row within the run. The log never blocks,
    never retries and never deletes; correcting and re-feeding rows is the
    job of an external reprocessing tool in a later run.

Architecture:
    ::

        FactResolver ──┐
                       ├──▶ QuarantineLog.append() ──▶ entries (in memory)
        CalendarBuilder┘                                   │
                                                           ▼
                                   Warehouse.publish() ──▶ quarantine table
                                                      (INSERT only, never DELETE)

Examples:
    >>> log = QuarantineLog(run_id="01J0000000000000000000000")
    >>> entry = log.append("sales", {"invoiceid": "536365"}, QuarantineReason.MISSING_PRODUCT)
    >>> entry.reason.value
    'missing product mapping'
    >>> log.counts_by_reason()
    {'missing product mapping': 1}

Guardrails:
    - Append is the only mutation; ``entries`` returns a tuple snapshot
    - Raw records are copied into plain dicts so the entry is JSON-ready
    - Appends are serialized with a lock; parallel resolvers may share a log
"""

from __future__ import annotations

import json
import threading
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from dimspine.core.logging import get_logger
from dimspine.core.timestamps import generate_ulid, utc_now

logger = get_logger(__name__)


class QuarantineReason(str, Enum):
    """
    Why a row was quarantined.

    For sales rows the first four are ranked: when several lookups fail, the
    highest-ranked reason is recorded (see ``FACT_REASON_PRIORITY``).
    """

    MISSING_PRODUCT_AND_CUSTOMER = "missing product and customer mapping"
    MISSING_PRODUCT = "missing product mapping"
    MISSING_CUSTOMER = "missing customer mapping"
    MISSING_CALENDAR = "missing calendar mapping"
    OTHER = "other"
    INVALID_TIMESTAMP = "invalid timestamp"


FACT_REASON_PRIORITY: tuple[QuarantineReason, ...] = (
    QuarantineReason.MISSING_PRODUCT_AND_CUSTOMER,
    QuarantineReason.MISSING_PRODUCT,
    QuarantineReason.MISSING_CUSTOMER,
    QuarantineReason.MISSING_CALENDAR,
    QuarantineReason.OTHER,
)


@dataclass(frozen=True)
class QuarantineEntry:
    """One rejected row."""

    entry_id: str
    run_id: str
    source_table: str
    raw_record: dict[str, Any]
    reason: QuarantineReason
    detail: str = ""
    created_at: datetime = field(default_factory=utc_now)

    def raw_json(self) -> str:
        return json.dumps(self.raw_record, sort_keys=True, default=str)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "run_id": self.run_id,
            "source_table": self.source_table,
            "raw_record": self.raw_record,
            "reason": self.reason.value,
            "detail": self.detail,
            "created_at": self.created_at.isoformat(),
        }


class QuarantineLog:
    """In-memory, append-only sink for one run's rejected rows."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._entries: list[QuarantineEntry] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[QuarantineEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def append(
        self,
        source_table: str,
        raw_record: Mapping[str, Any],
        reason: QuarantineReason,
        detail: str = "",
    ) -> QuarantineEntry:
        """Record a rejected row. Never raises for row content."""
        entry = QuarantineEntry(
            entry_id=generate_ulid(),
            run_id=self.run_id,
            source_table=source_table,
            raw_record=dict(raw_record),
            reason=reason,
            detail=detail,
        )
        with self._lock:
            self._entries.append(entry)
        logger.debug(
            "quarantine.appended",
            source_table=source_table,
            reason=reason.value,
            detail=detail,
        )
        return entry

    def count(self, source_table: str | None = None) -> int:
        if source_table is None:
            return len(self)
        return sum(1 for e in self.entries if e.source_table == source_table)

    def counts_by_reason(self, source_table: str | None = None) -> dict[str, int]:
        counter = Counter(
            e.reason.value for e in self.entries if source_table is None or e.source_table == source_table
        )
        return dict(counter)


__all__ = [
    "QuarantineReason",
    "FACT_REASON_PRIORITY",
    "QuarantineEntry",
    "QuarantineLog",
]
