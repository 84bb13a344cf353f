"""Datetime parsing helpers for query filters."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone


@dataclass
class ParsedDatetime:
    value: datetime | None


def parse_filter_datetime(raw_value: str, *, end_of_day: bool = False) -> ParsedDatetime:
    """
    Parse an ISO date or datetime into an aware UTC datetime.

    Values without an offset are read as UTC. A bare date resolves to the
    start of that day, or to its last microsecond when ``end_of_day`` is set
    so an inclusive upper bound covers the whole day.

    Raises:
        ValueError: value is not ISO 8601
    """
    value = raw_value.strip()
    if not value:
        return ParsedDatetime(value=None)

    if len(value) == 10:
        day = date.fromisoformat(value)
        moment = time.max if end_of_day else time.min
        return ParsedDatetime(value=datetime.combine(day, moment, tzinfo=timezone.utc))

    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return ParsedDatetime(value=dt.astimezone(timezone.utc))
