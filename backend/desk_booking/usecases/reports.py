from dataclasses import dataclass
from datetime import date, timedelta

from ..domain.calendar import month_bounds
from ..domain.repositories import LedgerRepository, LocationRepository, UserRepository
from ..domain.services import ComplianceRow, non_compliant, representative_day
from ..models import BookingStatus


async def compliance_report(
    user_repo: UserRepository,
    ledger: LedgerRepository,
    *,
    year: int,
    month: int,
    threshold: int = 10,
) -> list[ComplianceRow]:
    start, end = month_bounds(year, month)
    counts = await ledger.confirmed_counts_by_user(start, end)
    associates = await user_repo.list_associates()
    return non_compliant(
        [(user.id, user.employee_id, user.name) for user in associates],
        counts,
        threshold=threshold,
    )


@dataclass(frozen=True)
class LocationStats:
    location_id: int
    location_name: str
    capacity: int
    booked: int
    waitlisted: int
    cancellations_today: int
    cancellations_month: int


@dataclass(frozen=True)
class DashboardStats:
    stats_for_date: date
    total_capacity: int
    total_booked_today: int
    total_waitlisted_today: int
    total_cancellations_today: int
    location_stats: list[LocationStats]


async def dashboard_stats(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    today: date,
) -> DashboardStats:
    day = representative_day(today)
    next_day = day + timedelta(days=1)
    month_start, month_end = month_bounds(day.year, day.month)

    booked = await ledger.booking_counts_by_location(day, next_day, BookingStatus.CONFIRMED)
    cancelled_today = await ledger.booking_counts_by_location(day, next_day, BookingStatus.CANCELLED)
    cancelled_month = await ledger.booking_counts_by_location(month_start, month_end, BookingStatus.CANCELLED)
    waitlisted = await ledger.waitlist_counts_by_location(day)

    locations = await location_repo.list_all()
    per_location = [
        LocationStats(
            location_id=location.id,
            location_name=location.name,
            capacity=location.capacity,
            booked=booked.get(location.id, 0),
            waitlisted=waitlisted.get(location.id, 0),
            cancellations_today=cancelled_today.get(location.id, 0),
            cancellations_month=cancelled_month.get(location.id, 0),
        )
        for location in locations
    ]
    return DashboardStats(
        stats_for_date=day,
        total_capacity=sum(location.capacity for location in locations),
        total_booked_today=sum(booked.values()),
        total_waitlisted_today=sum(waitlisted.values()),
        total_cancellations_today=sum(cancelled_today.values()),
        location_stats=per_location,
    )
