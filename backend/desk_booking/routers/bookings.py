from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_principal, get_policy, get_session
from ..domain.errors import (
    AlreadyBookedError,
    BookingNotFoundError,
    EmptySelectionError,
    NonWorkingDayError,
    NotOnWaitlistError,
    UnknownUserError,
    WaitlistFullError,
    WeeklyMinimumViolationError,
)
from ..domain.services import BookingPolicy
from ..infrastructure.locks import day_locks
from ..infrastructure.repositories import (
    SqlAlchemyLedgerRepository,
    SqlAlchemyLocationRepository,
    SqlAlchemyUserRepository,
)
from ..models import BookingStatus
from ..schemas import BookingRead, BookingSubmit, SubmitResultRead, WaitlistEntryRead, WaitlistJoin
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.auth import Principal
from ..utils.events import ledger_events

router = APIRouter(prefix="/me", tags=["bookings"], dependencies=[Depends(get_current_principal)])


def _audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")


@router.post("/bookings", response_model=SubmitResultRead, status_code=status.HTTP_201_CREATED)
async def submit_bookings(
    payload: BookingSubmit,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    policy: BookingPolicy = Depends(get_policy),
) -> SubmitResultRead:
    user_repo = SqlAlchemyUserRepository(session)
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with day_locks.hold(principal.location_id, payload.dates):
        async with session.begin():
            try:
                result = await booking_usecase.submit_bookings(
                    user_repo,
                    location_repo,
                    ledger,
                    user_id=principal.user_id,
                    days=payload.dates,
                    policy=policy,
                    year=payload.year,
                    month=payload.month,
                )
            except (EmptySelectionError, NonWorkingDayError, WeeklyMinimumViolationError) as exc:
                raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
            except UnknownUserError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")

    if result.booked_dates:
        ledger_events.publish(
            "bookings.submitted",
            location_id=principal.location_id,
            days=tuple(result.booked_dates),
        )
        try:
            emit_audit_log(
                action="bookings.submitted",
                initiator="user",
                actor_id=principal.user_id,
                user_id=principal.user_id,
                location_id=principal.location_id,
                days=result.booked_dates,
                status_to=BookingStatus.CONFIRMED,
                extra={"full_dates": [d.isoformat() for d in result.full_dates]} if result.full_dates else None,
            )
        except RuntimeError:
            raise _audit_failed()
    return SubmitResultRead.from_result(result)


@router.get("/bookings", response_model=List[BookingRead])
async def list_my_bookings(
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
) -> list[BookingRead]:
    ledger = SqlAlchemyLedgerRepository(session)
    rows = await booking_usecase.list_user_bookings(ledger, user_id=principal.user_id)
    return [BookingRead.from_db(booking=booking) for booking in rows]


@router.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
) -> BookingRead:
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        existing = await ledger.get_booking_for_user(booking_id, principal.user_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")

    async with day_locks.hold(principal.location_id, [existing.day]):
        async with session.begin():
            try:
                updated, previous = await booking_usecase.cancel_booking(
                    ledger,
                    booking_id=booking_id,
                    user_id=principal.user_id,
                )
            except BookingNotFoundError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")

    if previous != updated.status:
        ledger_events.publish("booking.cancelled", location_id=principal.location_id, days=(updated.day,))
        try:
            emit_audit_log(
                action="booking.cancelled",
                initiator="user",
                actor_id=principal.user_id,
                user_id=principal.user_id,
                location_id=principal.location_id,
                days=[updated.day],
                booking_id=updated.id,
                status_from=previous,
                status_to=updated.status,
            )
        except RuntimeError:
            raise _audit_failed()
    return BookingRead.from_db(booking=updated)


@router.post("/waitlist", response_model=WaitlistEntryRead, status_code=status.HTTP_201_CREATED)
async def join_waitlist(
    payload: WaitlistJoin,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    policy: BookingPolicy = Depends(get_policy),
) -> WaitlistEntryRead:
    user_repo = SqlAlchemyUserRepository(session)
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with day_locks.hold(principal.location_id, [payload.day]):
        async with session.begin():
            try:
                entry, created = await booking_usecase.join_waitlist(
                    user_repo,
                    location_repo,
                    ledger,
                    user_id=principal.user_id,
                    day=payload.day,
                    policy=policy,
                )
            except AlreadyBookedError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="already booked for this date")
            except WaitlistFullError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="waitlist is full")
            except UnknownUserError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")

    if created:
        ledger_events.publish("waitlist.joined", location_id=principal.location_id, days=(entry.day,))
        try:
            emit_audit_log(
                action="waitlist.joined",
                initiator="user",
                actor_id=principal.user_id,
                user_id=principal.user_id,
                location_id=principal.location_id,
                days=[entry.day],
            )
        except RuntimeError:
            raise _audit_failed()
    return WaitlistEntryRead(user_id=entry.user_id, day=entry.day, created=created)


@router.delete("/waitlist/{day}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_waitlist(
    day: date,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
) -> None:
    ledger = SqlAlchemyLedgerRepository(session)
    async with day_locks.hold(principal.location_id, [day]):
        async with session.begin():
            try:
                await booking_usecase.leave_waitlist(ledger, user_id=principal.user_id, day=day)
            except NotOnWaitlistError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not on the waitlist")

    ledger_events.publish("waitlist.left", location_id=principal.location_id, days=(day,))
    try:
        emit_audit_log(
            action="waitlist.left",
            initiator="user",
            actor_id=principal.user_id,
            user_id=principal.user_id,
            location_id=principal.location_id,
            days=[day],
        )
    except RuntimeError:
        raise _audit_failed()
