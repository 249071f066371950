"""Calendar date range handling."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Union

from .errors import InvalidRange

DateLike = Union[str, date]


def parse_date(value: DateLike) -> date:
    """Parse an ISO-8601 calendar date (``YYYY-MM-DD``, no time part).

    Raises:
        InvalidRange: If ``value`` is not a calendar date.
    """
    if isinstance(value, datetime):
        raise InvalidRange(f"Expected a calendar date, got timestamp {value!r}")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidRange(f"Expected an ISO-8601 date string, got {value!r}")

    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidRange(f"Invalid date {value!r}: expected YYYY-MM-DD") from exc


def date_range(from_date: DateLike, to_date: DateLike) -> list[date]:
    """Inclusive day-by-day sequence from ``from_date`` to ``to_date``.

    Raises:
        InvalidRange: If either bound is unparseable or the range is inverted.
    """
    start = parse_date(from_date)
    end = parse_date(to_date)
    if start > end:
        raise InvalidRange(f"Start date {start} is after end date {end}")

    return [start + timedelta(days=i) for i in range((end - start).days + 1)]
