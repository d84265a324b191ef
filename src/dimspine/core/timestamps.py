"""
Run identifiers and UTC timestamps.

Run ids and quarantine entry ids are ULIDs, so entries appended by
successive runs sort by creation time. Timestamps are timezone-aware UTC
and are persisted as ISO 8601 text.
"""

from datetime import UTC, datetime

import ulid


def utc_now() -> datetime:
    """Current UTC datetime."""
    return datetime.now(UTC)


def generate_ulid() -> str:
    """26-char time-sortable identifier."""
    return str(ulid.new())


def to_iso8601(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)
