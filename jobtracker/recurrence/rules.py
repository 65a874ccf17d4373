"""Recurrence pattern validation and next-date arithmetic."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Iterator

from dateutil.relativedelta import relativedelta

from ..jobs.types import RecurrencePattern, RecurrenceType


DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class RecurrenceConfigError(ValueError):
    """Raised when a recurrence pattern cannot be saved."""


def weekday_index(value: datetime) -> int:
    """Weekday of ``value`` in UTC, with Sunday as 0.

    Timestamps are normalized to UTC when parsed, so weekday and
    day-of-month selections are always matched against the UTC date.
    """
    value = value.astimezone(timezone.utc)
    return (value.weekday() + 1) % 7


def normalize_pattern(pattern: RecurrencePattern) -> RecurrencePattern:
    """Clear the fields that don't apply to the pattern's type."""
    if pattern.type == RecurrenceType.DAILY:
        return replace(pattern, days_of_week=None, day_of_month=None)
    if pattern.type == RecurrenceType.WEEKLY:
        days = sorted(set(pattern.days_of_week or []))
        return replace(pattern, days_of_week=days, day_of_month=None)
    return replace(pattern, days_of_week=None)


def validate_pattern(pattern: RecurrencePattern) -> None:
    """Raise RecurrenceConfigError if the pattern is not usable."""
    if not isinstance(pattern.interval, int) or pattern.interval < 1:
        raise RecurrenceConfigError(
            f"Interval must be a positive integer, got {pattern.interval!r}"
        )

    if pattern.type == RecurrenceType.WEEKLY:
        if not pattern.days_of_week:
            raise RecurrenceConfigError("Weekly recurrence needs at least one day")
        bad = [d for d in pattern.days_of_week if not 0 <= d <= 6]
        if bad:
            raise RecurrenceConfigError(f"Invalid weekday index: {bad}")
        if pattern.day_of_month is not None:
            raise RecurrenceConfigError("day_of_month is only valid for monthly")
    elif pattern.type == RecurrenceType.MONTHLY:
        if pattern.day_of_month is None:
            raise RecurrenceConfigError("Monthly recurrence needs a day_of_month")
        if not 1 <= pattern.day_of_month <= 31:
            raise RecurrenceConfigError(
                f"day_of_month must be between 1 and 31, got {pattern.day_of_month}"
            )
        if pattern.days_of_week is not None:
            raise RecurrenceConfigError("days_of_week is only valid for weekly")
    elif pattern.days_of_week is not None or pattern.day_of_month is not None:
        raise RecurrenceConfigError("Daily recurrence takes no day selection")


def compute_next_occurrence(
    pattern: RecurrencePattern, from_date: datetime
) -> datetime:
    """Return the occurrence that follows ``from_date``.

    Weekly patterns walk forward to the next selected weekday. When that
    wraps past Saturday into a new week, ``interval - 1`` extra weeks are
    skipped. Monthly patterns clamp to the last day of shorter months.
    """
    if pattern.type == RecurrenceType.DAILY:
        return from_date + timedelta(days=pattern.interval)

    if pattern.type == RecurrenceType.WEEKLY:
        days = sorted(set(pattern.days_of_week or []))
        current = weekday_index(from_date)
        later = [d for d in days if d > current]
        if later:
            return from_date + timedelta(days=later[0] - current)
        skip = 7 * (pattern.interval - 1)
        return from_date + timedelta(days=7 - current + days[0] + skip)

    # relativedelta clamps an absolute day past the month end
    return from_date + relativedelta(months=pattern.interval, day=pattern.day_of_month)


def first_occurrence(pattern: RecurrencePattern, start: datetime) -> datetime:
    """Return the first date at or after ``start`` that matches the pattern."""
    if pattern.type == RecurrenceType.DAILY:
        return start

    if pattern.type == RecurrenceType.WEEKLY:
        days = sorted(set(pattern.days_of_week or []))
        current = weekday_index(start)
        if current in days:
            return start
        later = [d for d in days if d > current]
        if later:
            return start + timedelta(days=later[0] - current)
        return start + timedelta(days=7 - current + days[0])

    candidate = start + relativedelta(day=pattern.day_of_month)
    if candidate >= start:
        return candidate
    return start + relativedelta(months=1, day=pattern.day_of_month)


def iter_occurrences(
    pattern: RecurrencePattern, start: datetime, count: int
) -> Iterator[datetime]:
    """Yield the next ``count`` occurrences from ``start`` onwards."""
    current = first_occurrence(pattern, start)
    for _ in range(count):
        yield current
        current = compute_next_occurrence(pattern, current)


def describe_pattern(pattern: RecurrencePattern) -> str:
    unit = {
        RecurrenceType.DAILY: "day",
        RecurrenceType.WEEKLY: "week",
        RecurrenceType.MONTHLY: "month",
    }[pattern.type]
    text = f"every {unit}" if pattern.interval == 1 else f"every {pattern.interval} {unit}s"
    if pattern.type == RecurrenceType.WEEKLY and pattern.days_of_week:
        names = ", ".join(DAY_NAMES[d] for d in sorted(set(pattern.days_of_week)))
        text += f" on {names}"
    elif pattern.type == RecurrenceType.MONTHLY and pattern.day_of_month:
        text += f" on day {pattern.day_of_month}"
    return text
