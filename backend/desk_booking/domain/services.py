from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from typing import Iterable, Mapping

from .calendar import holidays_for_year, is_non_working_day, iso_week_key, next_month_start, sunday_on_or_before
from .errors import (
    AlreadyBookedError,
    CapacityExceededError,
    EmptySelectionError,
    NonWorkingDayError,
    NotOnWaitlistError,
    WaitlistFullError,
    WeeklyMinimumViolationError,
)


@dataclass(frozen=True)
class DayStatus:
    bookings: int
    waitlist: int
    is_full: bool
    is_waitlist_full: bool

    @property
    def exhausted(self) -> bool:
        return self.is_full and self.is_waitlist_full


def day_status(*, bookings: int, waitlist: int, capacity: int, waitlist_cap: int) -> DayStatus:
    return DayStatus(
        bookings=bookings,
        waitlist=waitlist,
        is_full=bookings >= capacity,
        is_waitlist_full=waitlist >= waitlist_cap,
    )


@dataclass(frozen=True)
class DaySnapshot:
    """Ledger state of one (location, date) as seen by one user, read under the day lock."""

    capacity: int
    confirmed: int
    waitlisted: int
    user_has_confirmed: bool
    user_on_waitlist: bool


class Admission(StrEnum):
    BOOK = "book"
    ALREADY_BOOKED = "already_booked"
    FULL = "full"


def admit_booking(snapshot: DaySnapshot, *, enforce_capacity: bool) -> Admission:
    """Decide the outcome of one submitted date. Never raises: partial success is allowed."""
    if snapshot.user_has_confirmed:
        return Admission.ALREADY_BOOKED
    if enforce_capacity and snapshot.confirmed >= snapshot.capacity:
        return Admission.FULL
    return Admission.BOOK


def validate_waitlist_join(snapshot: DaySnapshot, *, waitlist_cap: int) -> bool:
    """
    Return True when the user must be enqueued, False when already queued (idempotent join).
    Raises AlreadyBookedError / WaitlistFullError otherwise.
    """
    if snapshot.user_has_confirmed:
        raise AlreadyBookedError("user already holds a confirmed booking for this date")
    if snapshot.user_on_waitlist:
        return False
    if snapshot.waitlisted >= waitlist_cap:
        raise WaitlistFullError("waitlist is full for this date")
    return True


def validate_promotion(snapshot: DaySnapshot, *, enforce_capacity: bool) -> None:
    if not snapshot.user_on_waitlist:
        raise NotOnWaitlistError("user not found on waitlist")
    if snapshot.user_has_confirmed:
        raise AlreadyBookedError("user already holds a confirmed booking for this date")
    if enforce_capacity and snapshot.confirmed >= snapshot.capacity:
        raise CapacityExceededError("capacity exceeded")


def validate_weekly_minimum(
    candidates: Iterable[date],
    *,
    year: int,
    month: int,
    monthly_status: Mapping[date, DayStatus],
    minimum: int,
) -> None:
    """
    Each ISO week of the selection lying wholly inside (year, month) needs `minimum` days,
    unless a day of that week is exhausted (full and waitlist full).
    Weeks straddling a month boundary are exempt.
    """
    selected = sorted(set(candidates))
    if not selected:
        raise EmptySelectionError("select at least one date to book")

    weeks: dict[tuple[int, int], list[date]] = defaultdict(list)
    for day in selected:
        weeks[iso_week_key(day)].append(day)

    for key in sorted(weeks):
        days = weeks[key]
        week_start = sunday_on_or_before(days[0])
        week_end = week_start + timedelta(days=6)
        if (week_start.year, week_start.month) != (year, month):
            continue
        if (week_end.year, week_end.month) != (year, month):
            continue

        waived = False
        for offset in range(7):
            status = monthly_status.get(week_start + timedelta(days=offset))
            if status is not None and status.exhausted:
                waived = True
                break
        if not waived and len(days) < minimum:
            raise WeeklyMinimumViolationError(week_start, minimum)


def reject_non_working_days(candidates: Iterable[date], holidays: Mapping[date, str] | None = None) -> None:
    """Associates may only book working days. `holidays` defaults to the table for each date's year."""
    blocked = []
    for day in sorted(set(candidates)):
        table = holidays if holidays is not None else holidays_for_year(day.year)
        if is_non_working_day(day, table):
            blocked.append(day)
    if blocked:
        raise NonWorkingDayError(blocked)


def representative_day(today: date, holidays: Mapping[date, str] | None = None) -> date:
    """
    First working day among the first seven days of the month after `today`.
    Falls back to the 3rd of that month even when the 3rd is itself a non-working day.
    """
    first = next_month_start(today)
    if holidays is None:
        holidays = holidays_for_year(first.year)
    for offset in range(7):
        candidate = first + timedelta(days=offset)
        if not is_non_working_day(candidate, holidays):
            return candidate
    return first.replace(day=3)


@dataclass(frozen=True)
class ComplianceRow:
    user_id: int
    employee_id: str
    name: str
    booking_count: int


def non_compliant(
    associates: Iterable[tuple[int, str, str]],
    booking_counts: Mapping[int, int],
    *,
    threshold: int,
) -> list[ComplianceRow]:
    """Associates (id, employee_id, name) with fewer than `threshold` confirmed bookings, ordered by id."""
    rows: list[ComplianceRow] = []
    for user_id, employee_id, name in sorted(associates):
        count = booking_counts.get(user_id, 0)
        if count < threshold:
            rows.append(ComplianceRow(user_id=user_id, employee_id=employee_id, name=name, booking_count=count))
    return rows


@dataclass(frozen=True)
class BookingPolicy:
    enforce_capacity: bool = True
    waitlist_cap: int = 20
    weekly_minimum_days: int = 3
