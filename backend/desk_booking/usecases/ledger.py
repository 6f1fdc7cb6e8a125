"""Read side of the capacity ledger: day status, monthly projection and the waitlist queue."""

from dataclasses import dataclass
from datetime import date

from ..domain.calendar import days_in_month, month_bounds
from ..domain.errors import UnknownLocationError
from ..domain.repositories import LedgerRepository, LocationRepository
from ..domain.services import DayStatus, day_status
from ..models import Location, User, WaitlistEntry


async def require_location(location_repo: LocationRepository, location_id: int) -> Location:
    location = await location_repo.get(location_id)
    if location is None:
        raise UnknownLocationError(f"location {location_id} not found")
    return location


async def get_day_status(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    location_id: int,
    day: date,
    waitlist_cap: int,
) -> DayStatus:
    location = await require_location(location_repo, location_id)
    return day_status(
        bookings=await ledger.confirmed_count(location_id, day),
        waitlist=await ledger.waitlist_count(location_id, day),
        capacity=location.capacity,
        waitlist_cap=waitlist_cap,
    )


async def monthly_status(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    location_id: int,
    year: int,
    month: int,
    waitlist_cap: int,
) -> dict[date, DayStatus]:
    """DayStatus for every calendar day of the month; holidays are not special-cased here."""
    location = await require_location(location_repo, location_id)
    start, end = month_bounds(year, month)
    confirmed = await ledger.confirmed_counts_by_day(location_id, start, end)
    waitlisted = await ledger.waitlist_counts_by_day(location_id, start, end)
    return {
        day: day_status(
            bookings=confirmed.get(day, 0),
            waitlist=waitlisted.get(day, 0),
            capacity=location.capacity,
            waitlist_cap=waitlist_cap,
        )
        for day in days_in_month(year, month)
    }


async def ordered_waitlist(
    ledger: LedgerRepository,
    *,
    location_id: int,
    day: date,
) -> list[tuple[WaitlistEntry, User]]:
    return await ledger.ordered_waitlist(location_id, day)


async def dequeue_front(
    ledger: LedgerRepository,
    *,
    location_id: int,
    day: date,
) -> tuple[WaitlistEntry, User] | None:
    """Remove and return the FIFO head of the day's queue. Caller must hold the day lock."""
    queue = await ledger.ordered_waitlist(location_id, day)
    if not queue:
        return None
    entry, user = queue[0]
    await ledger.remove_entry(entry)
    return entry, user


@dataclass(frozen=True)
class DayDetails:
    day: date
    location: Location
    booked_users: list[User]
    waitlisted_users: list[User]

    @property
    def available_spots(self) -> int:
        return max(self.location.capacity - len(self.booked_users), 0)


async def day_details(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    location_id: int,
    day: date,
) -> DayDetails:
    location = await require_location(location_repo, location_id)
    booked = await ledger.booked_users(location_id, day)
    queue = await ledger.ordered_waitlist(location_id, day)
    return DayDetails(
        day=day,
        location=location,
        booked_users=booked,
        waitlisted_users=[user for _, user in queue],
    )
