"""Public holiday table and working-day arithmetic."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterator, Mapping

_PUBLIC_HOLIDAYS: dict[int, tuple[tuple[str, str], ...]] = {
    2024: (
        ("2024-01-26", "Republic Day"),
        ("2024-03-25", "Holi"),
        ("2024-03-29", "Good Friday"),
        ("2024-04-11", "Eid-ul-Fitr"),
        ("2024-08-15", "Independence Day"),
        ("2024-10-02", "Gandhi Jayanti"),
        ("2024-10-31", "Diwali"),
        ("2024-12-25", "Christmas"),
    ),
    2025: (
        ("2025-01-26", "Republic Day"),
        ("2025-03-14", "Holi"),
        ("2025-04-18", "Good Friday"),
        ("2025-03-31", "Eid-ul-Fitr"),
        ("2025-08-15", "Independence Day"),
        ("2025-10-02", "Gandhi Jayanti"),
        ("2025-10-20", "Diwali"),
        ("2025-12-25", "Christmas"),
    ),
    2026: (
        ("2026-01-26", "Republic Day"),
        ("2026-03-04", "Holi"),
        ("2026-03-21", "Eid-ul-Fitr"),
        ("2026-04-03", "Good Friday"),
        ("2026-08-15", "Independence Day"),
        ("2026-10-02", "Gandhi Jayanti"),
        ("2026-11-08", "Diwali"),
        ("2026-12-25", "Christmas"),
    ),
}


def holidays_for_year(year: int) -> dict[date, str]:
    """Return the holiday table for `year`; unknown years yield an empty mapping."""
    return {date.fromisoformat(raw): name for raw, name in _PUBLIC_HOLIDAYS.get(year, ())}


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def is_non_working_day(day: date, holidays: Mapping[date, str]) -> bool:
    return is_weekend(day) or day in holidays


def days_in_month(year: int, month: int) -> Iterator[date]:
    for number in range(1, calendar.monthrange(year, month)[1] + 1):
        yield date(year, month, number)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return [first day, first day of the following month)."""
    first = date(year, month, 1)
    return first, next_month_start(first)


def next_month_start(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def previous_month(day: date) -> tuple[int, int]:
    last_of_previous = day.replace(day=1) - timedelta(days=1)
    return last_of_previous.year, last_of_previous.month


def iso_week_key(day: date) -> tuple[int, int]:
    iso = day.isocalendar()
    return iso[0], iso[1]


def sunday_on_or_before(day: date) -> date:
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)
