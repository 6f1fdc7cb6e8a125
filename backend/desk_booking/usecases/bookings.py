from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable

from ..domain.errors import BookingNotFoundError, EmptySelectionError, NotOnWaitlistError, UnknownUserError
from ..domain.repositories import LedgerRepository, LocationRepository, UserRepository
from ..domain.services import (
    Admission,
    BookingPolicy,
    DaySnapshot,
    admit_booking,
    reject_non_working_days,
    validate_promotion,
    validate_waitlist_join,
    validate_weekly_minimum,
)
from ..models import Booking, BookingStatus, Location, User, WaitlistEntry
from ..utils.time import waitlist_clock
from . import ledger as ledger_usecase


@dataclass
class SubmitResult:
    booked_dates: list[date] = field(default_factory=list)
    already_booked_dates: list[date] = field(default_factory=list)
    full_dates: list[date] = field(default_factory=list)

    @property
    def message(self) -> str:
        parts = [f"Successfully booked {len(self.booked_dates)} days."]
        if self.already_booked_dates:
            parts.append(f"{len(self.already_booked_dates)} already booked.")
        if self.full_dates:
            parts.append(f"{len(self.full_dates)} at capacity; join the waitlist for those.")
        return " ".join(parts)


async def _user_and_location(
    user_repo: UserRepository,
    location_repo: LocationRepository,
    user_id: int,
) -> tuple[User, Location]:
    user = await user_repo.get(user_id)
    if user is None:
        raise UnknownUserError(f"user {user_id} not found")
    location = await location_repo.get(user.location_id)
    if location is None:
        raise UnknownUserError(f"user {user_id} has no valid location")
    return user, location


async def _snapshot(
    ledger: LedgerRepository,
    location: Location,
    user_id: int,
    day: date,
    entry: WaitlistEntry | None,
) -> DaySnapshot:
    return DaySnapshot(
        capacity=location.capacity,
        confirmed=await ledger.confirmed_count(location.id, day),
        waitlisted=await ledger.waitlist_count(location.id, day),
        user_has_confirmed=await ledger.user_has_confirmed(user_id, day),
        user_on_waitlist=entry is not None,
    )


async def submit_bookings(
    user_repo: UserRepository,
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    user_id: int,
    days: Iterable[date],
    policy: BookingPolicy,
    year: int | None = None,
    month: int | None = None,
) -> SubmitResult:
    """
    Validate the whole batch against the weekly rule, then admit each date independently.
    Caller must hold the day locks for every requested date.
    """
    selected = sorted(set(days))
    if not selected:
        raise EmptySelectionError("select at least one date to book")
    reject_non_working_days(selected)
    user, location = await _user_and_location(user_repo, location_repo, user_id)

    booking_year = year if year is not None else selected[0].year
    booking_month = month if month is not None else selected[0].month
    status = await ledger_usecase.monthly_status(
        location_repo,
        ledger,
        location_id=location.id,
        year=booking_year,
        month=booking_month,
        waitlist_cap=policy.waitlist_cap,
    )
    validate_weekly_minimum(
        selected,
        year=booking_year,
        month=booking_month,
        monthly_status=status,
        minimum=policy.weekly_minimum_days,
    )

    result = SubmitResult()
    for day in selected:
        entry = await ledger.get_waitlist_entry(user.id, day)
        snapshot = await _snapshot(ledger, location, user.id, day, entry)
        admission = admit_booking(snapshot, enforce_capacity=policy.enforce_capacity)
        if admission == Admission.ALREADY_BOOKED:
            result.already_booked_dates.append(day)
        elif admission == Admission.FULL:
            result.full_dates.append(day)
        else:
            # A confirmed user must not stay queued for the same date.
            if entry is not None:
                await ledger.remove_entry(entry)
            await ledger.create_booking(user.id, day, BookingStatus.CONFIRMED)
            result.booked_dates.append(day)
    return result


async def join_waitlist(
    user_repo: UserRepository,
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    user_id: int,
    day: date,
    policy: BookingPolicy,
) -> tuple[WaitlistEntry, bool]:
    """Returns the entry and whether it was created by this call."""
    user, location = await _user_and_location(user_repo, location_repo, user_id)
    existing = await ledger.get_waitlist_entry(user.id, day)
    snapshot = await _snapshot(ledger, location, user.id, day, existing)
    should_enqueue = validate_waitlist_join(snapshot, waitlist_cap=policy.waitlist_cap)
    if existing is not None and not should_enqueue:
        return existing, False
    entry = await ledger.enqueue(user.id, day, waitlist_clock.now())
    return entry, True


async def leave_waitlist(ledger: LedgerRepository, *, user_id: int, day: date) -> WaitlistEntry:
    entry = await ledger.get_waitlist_entry(user_id, day)
    if entry is None:
        raise NotOnWaitlistError("user not found on waitlist")
    await ledger.remove_entry(entry)
    return entry


async def confirm_from_waitlist(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    location_id: int,
    user_id: int,
    day: date,
    policy: BookingPolicy,
) -> Booking:
    """Remove the user's entry and confirm a booking in the same transaction."""
    location = await ledger_usecase.require_location(location_repo, location_id)
    entry = await ledger.get_waitlist_entry(user_id, day)
    if entry is None:
        raise NotOnWaitlistError("user not found on waitlist")
    queue = await ledger.ordered_waitlist(location.id, day)
    if all(queued.id != entry.id for queued, _ in queue):
        # Entry exists but belongs to another location's queue.
        raise NotOnWaitlistError("user not found on this location's waitlist")

    snapshot = await _snapshot(ledger, location, user_id, day, entry)
    validate_promotion(snapshot, enforce_capacity=policy.enforce_capacity)
    await ledger.remove_entry(entry)
    return await ledger.create_booking(user_id, day, BookingStatus.CONFIRMED)


async def promote_next(
    location_repo: LocationRepository,
    ledger: LedgerRepository,
    *,
    location_id: int,
    day: date,
    policy: BookingPolicy,
) -> tuple[Booking, User]:
    location = await ledger_usecase.require_location(location_repo, location_id)
    queue = await ledger.ordered_waitlist(location.id, day)
    if not queue:
        raise NotOnWaitlistError("waitlist is empty")
    head_entry, head_user = queue[0]
    snapshot = await _snapshot(ledger, location, head_user.id, day, head_entry)
    validate_promotion(snapshot, enforce_capacity=policy.enforce_capacity)
    await ledger_usecase.dequeue_front(ledger, location_id=location.id, day=day)
    booking = await ledger.create_booking(head_user.id, day, BookingStatus.CONFIRMED)
    return booking, head_user


async def cancel_booking(
    ledger: LedgerRepository,
    *,
    booking_id: int,
    user_id: int,
) -> tuple[Booking, BookingStatus]:
    """Returns the booking and its status before the call."""
    booking = await ledger.get_booking_for_user(booking_id, user_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    previous = booking.status
    # Idempotent: already cancelled returns as-is
    if booking.status == BookingStatus.CANCELLED:
        return booking, previous
    booking.status = BookingStatus.CANCELLED
    booking.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    updated = await ledger.cancel(booking)
    return updated, previous


async def list_user_bookings(ledger: LedgerRepository, *, user_id: int) -> list[Booking]:
    return await ledger.list_bookings_for_user(user_id)
