from datetime import date, datetime

import pytest
from desk_booking.domain.errors import (
    AlreadyBookedError,
    BookingNotFoundError,
    CapacityExceededError,
    NonWorkingDayError,
    NotOnWaitlistError,
    WaitlistFullError,
    WeeklyMinimumViolationError,
)
from desk_booking.domain.services import BookingPolicy
from desk_booking.models import BookingStatus
from desk_booking.usecases import bookings as uc

WEEK = [date(2025, 6, 9), date(2025, 6, 10), date(2025, 6, 11)]
POLICY = BookingPolicy(enforce_capacity=True, waitlist_cap=2, weekly_minimum_days=3)


@pytest.mark.asyncio
async def test_submit_books_full_week(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=2)
    user = store.add_user(location)
    result = await uc.submit_bookings(user_repo, location_repo, ledger, user_id=user.id, days=WEEK, policy=POLICY)
    assert result.booked_dates == WEEK
    assert result.message.startswith("Successfully booked 3 days.")
    assert await ledger.confirmed_count(location.id, WEEK[0]) == 1


@pytest.mark.asyncio
async def test_submit_twice_reports_already_booked(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=2)
    user = store.add_user(location)
    await uc.submit_bookings(user_repo, location_repo, ledger, user_id=user.id, days=WEEK, policy=POLICY)
    again = await uc.submit_bookings(user_repo, location_repo, ledger, user_id=user.id, days=WEEK, policy=POLICY)
    assert again.booked_dates == []
    assert again.already_booked_dates == WEEK
    assert len(store.bookings) == 3


@pytest.mark.asyncio
async def test_submit_skips_days_at_capacity(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=1)
    first = store.add_user(location)
    second = store.add_user(location)
    await ledger.create_booking(first.id, WEEK[1], BookingStatus.CONFIRMED)

    result = await uc.submit_bookings(user_repo, location_repo, ledger, user_id=second.id, days=WEEK, policy=POLICY)
    assert result.booked_dates == [WEEK[0], WEEK[2]]
    assert result.full_dates == [WEEK[1]]
    assert await ledger.confirmed_count(location.id, WEEK[1]) == 1


@pytest.mark.asyncio
async def test_weekly_violation_writes_nothing(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=2)
    user = store.add_user(location)
    with pytest.raises(WeeklyMinimumViolationError):
        await uc.submit_bookings(user_repo, location_repo, ledger, user_id=user.id, days=WEEK[:2], policy=POLICY)
    assert store.bookings == []


@pytest.mark.asyncio
async def test_single_day_allowed_when_week_has_exhausted_day(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=1)
    others = [store.add_user(location) for _ in range(3)]
    user = store.add_user(location)
    await ledger.create_booking(others[0].id, date(2025, 6, 12), BookingStatus.CONFIRMED)
    await ledger.enqueue(others[1].id, date(2025, 6, 12), datetime(2025, 6, 1, 9, 0, 1))
    await ledger.enqueue(others[2].id, date(2025, 6, 12), datetime(2025, 6, 1, 9, 0, 2))

    result = await uc.submit_bookings(user_repo, location_repo, ledger, user_id=user.id, days=[WEEK[0]], policy=POLICY)
    assert result.booked_dates == [WEEK[0]]


@pytest.mark.asyncio
async def test_submit_rejects_weekend(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location()
    user = store.add_user(location)
    with pytest.raises(NonWorkingDayError):
        await uc.submit_bookings(
            user_repo,
            location_repo,
            ledger,
            user_id=user.id,
            days=WEEK + [date(2025, 6, 14)],
            policy=POLICY,
        )
    assert store.bookings == []


@pytest.mark.asyncio
async def test_join_waitlist_rules(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=1)
    booked, a, b, c = (store.add_user(location) for _ in range(4))
    day = WEEK[0]
    await ledger.create_booking(booked.id, day, BookingStatus.CONFIRMED)

    with pytest.raises(AlreadyBookedError):
        await uc.join_waitlist(user_repo, location_repo, ledger, user_id=booked.id, day=day, policy=POLICY)

    entry, created = await uc.join_waitlist(user_repo, location_repo, ledger, user_id=a.id, day=day, policy=POLICY)
    assert created
    same, created_again = await uc.join_waitlist(user_repo, location_repo, ledger, user_id=a.id, day=day, policy=POLICY)
    assert same is entry
    assert created_again is False

    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=b.id, day=day, policy=POLICY)
    with pytest.raises(WaitlistFullError):
        await uc.join_waitlist(user_repo, location_repo, ledger, user_id=c.id, day=day, policy=POLICY)
    assert await ledger.waitlist_count(location.id, day) == 2


@pytest.mark.asyncio
async def test_promote_next_is_fifo(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=5)
    first, second = store.add_user(location), store.add_user(location)
    day = WEEK[0]
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=first.id, day=day, policy=POLICY)
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=second.id, day=day, policy=POLICY)

    _, promoted = await uc.promote_next(location_repo, ledger, location_id=location.id, day=day, policy=POLICY)
    assert promoted.id == first.id
    _, promoted = await uc.promote_next(location_repo, ledger, location_id=location.id, day=day, policy=POLICY)
    assert promoted.id == second.id
    with pytest.raises(NotOnWaitlistError):
        await uc.promote_next(location_repo, ledger, location_id=location.id, day=day, policy=POLICY)


@pytest.mark.asyncio
async def test_submit_by_waitlisted_user_leaves_the_queue(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=1)
    holder, queued, behind = store.add_user(location), store.add_user(location), store.add_user(location)
    day = WEEK[0]
    held = await ledger.create_booking(holder.id, day, BookingStatus.CONFIRMED)
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=queued.id, day=day, policy=POLICY)
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=behind.id, day=day, policy=POLICY)
    await uc.cancel_booking(ledger, booking_id=held.id, user_id=holder.id)

    result = await uc.submit_bookings(user_repo, location_repo, ledger, user_id=queued.id, days=WEEK, policy=POLICY)
    assert result.booked_dates == WEEK
    assert await ledger.get_waitlist_entry(queued.id, day) is None
    assert await ledger.waitlist_count(location.id, day) == 1
    queue = await ledger.ordered_waitlist(location.id, day)
    assert [user.id for _, user in queue] == [behind.id]

    booking = next(b for b in store.bookings if b.user_id == queued.id and b.day == day)
    await uc.cancel_booking(ledger, booking_id=booking.id, user_id=queued.id)
    _, promoted = await uc.promote_next(location_repo, ledger, location_id=location.id, day=day, policy=POLICY)
    assert promoted.id == behind.id

@pytest.mark.asyncio
async def test_confirm_replay_fails_without_changing_counts(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=2)
    user = store.add_user(location)
    day = WEEK[0]
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=user.id, day=day, policy=POLICY)

    booking = await uc.confirm_from_waitlist(
        location_repo, ledger, location_id=location.id, user_id=user.id, day=day, policy=POLICY
    )
    assert booking.status == BookingStatus.CONFIRMED
    counts = (await ledger.confirmed_count(location.id, day), await ledger.waitlist_count(location.id, day))
    assert counts == (1, 0)

    with pytest.raises(NotOnWaitlistError):
        await uc.confirm_from_waitlist(
            location_repo, ledger, location_id=location.id, user_id=user.id, day=day, policy=POLICY
        )
    assert (await ledger.confirmed_count(location.id, day), await ledger.waitlist_count(location.id, day)) == counts


@pytest.mark.asyncio
async def test_confirm_rejects_when_day_full(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location(capacity=1)
    holder, waiting = store.add_user(location), store.add_user(location)
    day = WEEK[0]
    await ledger.create_booking(holder.id, day, BookingStatus.CONFIRMED)
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=waiting.id, day=day, policy=POLICY)

    with pytest.raises(CapacityExceededError):
        await uc.confirm_from_waitlist(
            location_repo, ledger, location_id=location.id, user_id=waiting.id, day=day, policy=POLICY
        )
    assert await ledger.waitlist_count(location.id, day) == 1


@pytest.mark.asyncio
async def test_confirm_ignores_other_location_queue(store, user_repo, location_repo, ledger) -> None:
    pune, chennai = store.add_location("Pune"), store.add_location("Chennai")
    user = store.add_user(chennai)
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=user.id, day=WEEK[0], policy=POLICY)
    with pytest.raises(NotOnWaitlistError):
        await uc.confirm_from_waitlist(
            location_repo, ledger, location_id=pune.id, user_id=user.id, day=WEEK[0], policy=POLICY
        )


@pytest.mark.asyncio
async def test_leave_waitlist(store, user_repo, location_repo, ledger) -> None:
    location = store.add_location()
    user = store.add_user(location)
    with pytest.raises(NotOnWaitlistError):
        await uc.leave_waitlist(ledger, user_id=user.id, day=WEEK[0])
    await uc.join_waitlist(user_repo, location_repo, ledger, user_id=user.id, day=WEEK[0], policy=POLICY)
    await uc.leave_waitlist(ledger, user_id=user.id, day=WEEK[0])
    assert store.waitlist == []


@pytest.mark.asyncio
async def test_cancel_is_idempotent(store, ledger) -> None:
    location = store.add_location()
    user = store.add_user(location)
    booking = await ledger.create_booking(user.id, WEEK[0], BookingStatus.CONFIRMED)

    updated, previous = await uc.cancel_booking(ledger, booking_id=booking.id, user_id=user.id)
    assert previous == BookingStatus.CONFIRMED
    assert updated.status == BookingStatus.CANCELLED
    again, previous = await uc.cancel_booking(ledger, booking_id=booking.id, user_id=user.id)
    assert previous == BookingStatus.CANCELLED
    assert again is updated

    with pytest.raises(BookingNotFoundError):
        await uc.cancel_booking(ledger, booking_id=booking.id, user_id=user.id + 100)
