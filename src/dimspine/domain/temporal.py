"""
Temporal parsing and calendar derivation.

Two literal layouts are accepted, each with an optional time part::

    YYYY-MM-DD[ HH:MM[:SS[.ffffff]]]     2020-03-01 10:15:00
    DD/MM/YYYY[ HH:MM[:SS[.ffffff]]]     01/03/2020 10:15

Anything else (``2020/03/01``, ``1-3-2020``, ``2020-02-30``, trailing text)
is unresolved. A missing time means midnight.

The calendar key is the instant rendered as ``YYYYMMDDHHMMSS``. Fractional
seconds are truncated before the key is taken, so two instants inside the
same second share one calendar row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time

from dimspine.domain.normalize import UNRESOLVED, Unresolved, clean_text

_TIME_PART = r"(?:\s+(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,6}))?)?)?"

_ISO_LAYOUT = re.compile(r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})" + _TIME_PART, re.ASCII)
_DAY_FIRST_LAYOUT = re.compile(r"(?P<day>\d{2})/(?P<month>\d{2})/(?P<year>\d{4})" + _TIME_PART, re.ASCII)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# ISO weekday numbers (Monday=1)
WEEKEND_ISO_DAYS = frozenset({6, 7})


@dataclass(frozen=True)
class ParsedInstant:
    """A resolved timestamp with its calendar decomposition."""

    instant: datetime

    @property
    def date(self) -> date:
        return self.instant.date()

    @property
    def time(self) -> time:
        return self.instant.time()

    @property
    def year(self) -> int:
        return self.instant.year

    @property
    def month(self) -> int:
        return self.instant.month

    @property
    def day(self) -> int:
        return self.instant.day

    @property
    def hour(self) -> int:
        return self.instant.hour

    @property
    def minute(self) -> int:
        return self.instant.minute

    @property
    def second(self) -> int:
        return self.instant.second

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.instant.weekday()]

    @property
    def is_weekend(self) -> bool:
        return self.instant.isoweekday() in WEEKEND_ISO_DAYS

    @property
    def quarter(self) -> int:
        return (self.instant.month - 1) // 3 + 1

    @property
    def key(self) -> int:
        return calendar_key(self.instant)

    def truncated(self) -> ParsedInstant:
        """Same instant with sub-second precision dropped."""
        return ParsedInstant(self.instant.replace(microsecond=0))


def calendar_key(instant: datetime) -> int:
    """14-digit ``YYYYMMDDHHMMSS`` surrogate key for the calendar dimension."""
    return int(instant.strftime("%Y%m%d%H%M%S"))


def _to_datetime(match: re.Match[str]) -> datetime | Unresolved:
    fraction = match.group("fraction") or ""
    try:
        return datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour") or 0),
            int(match.group("minute") or 0),
            int(match.group("second") or 0),
            int(fraction.ljust(6, "0")) if fraction else 0,
        )
    except ValueError:
        # Pattern matched but components are out of range (month 13, Feb 30)
        return UNRESOLVED


def parse_instant(raw: str | None) -> ParsedInstant | Unresolved:
    """Resolve date/time text into a ``ParsedInstant``."""
    text = clean_text(raw)
    if text is UNRESOLVED:
        return UNRESOLVED

    match = _ISO_LAYOUT.fullmatch(text) or _DAY_FIRST_LAYOUT.fullmatch(text)
    if match is None:
        return UNRESOLVED

    instant = _to_datetime(match)
    if instant is UNRESOLVED:
        return UNRESOLVED
    return ParsedInstant(instant)


def parse_date(raw: str | None) -> date | Unresolved:
    """Calendar date part of ``parse_instant``."""
    parsed = parse_instant(raw)
    if parsed is UNRESOLVED:
        return UNRESOLVED
    return parsed.date
