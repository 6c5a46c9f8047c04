"""Day-granular date helpers for expiration checks and display.

All comparisons drop the time of day first, so an agreement expiring on a
given calendar date is treated the same whether "now" is read at 00:01 or
23:59.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from .models import DateLike


def to_day(value: date | datetime) -> date:
    """Truncate a ``datetime`` to its calendar date."""
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_date(value: DateLike) -> date:
    """Parse a calendar date.

    Accepts ``date``/``datetime`` objects and ISO-8601 strings, with or
    without a time part (``2025-03-01``, ``2025-03-01T10:30:00Z``).

    Raises:
        ValueError: If the value is empty or not a recognisable date.
    """
    if isinstance(value, (date, datetime)):
        return to_day(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a date: {value!r}")

    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValueError(f"Not a date: {value!r}") from exc


def days_until(expiration: DateLike, now: date | datetime) -> int:
    """Whole days from ``now`` to ``expiration``; negative once past."""
    return (parse_date(expiration) - to_day(now)).days


def is_expiring_within(expiration: DateLike, now: date | datetime, days: int) -> bool:
    """True if ``expiration`` is strictly after today and at most ``days`` away."""
    remaining = days_until(expiration, now)
    return 0 < remaining <= days


def is_expired(expiration: DateLike, now: date | datetime) -> bool:
    return days_until(expiration, now) < 0


def format_date(value: DateLike) -> str:
    """Format a date as ``Jan 15, 2024``; unparseable input is returned as text."""
    try:
        day = parse_date(value)
    except ValueError:
        return str(value)
    return f"{day:%b} {day.day}, {day.year}"


def format_relative(value: DateLike, now: date | datetime) -> str:
    """Describe a date relative to ``now`` (``Today``, ``In 5 days``, ...)."""
    try:
        diff = days_until(value, now)
    except ValueError:
        return str(value)

    if diff == 0:
        return "Today"
    if diff == 1:
        return "Tomorrow"
    if diff == -1:
        return "Yesterday"
    if diff > 0:
        return f"In {diff} days"
    return f"{-diff} days ago"


def add_days(value: date | datetime, days: int) -> date:
    return to_day(value) + timedelta(days=days)
