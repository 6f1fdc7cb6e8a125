from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_policy, get_session, require_admin
from ..domain.calendar import previous_month
from ..domain.errors import (
    AlreadyBookedError,
    CapacityExceededError,
    MissingRequiredColumnError,
    NotOnWaitlistError,
    UnknownLocationError,
)
from ..domain.services import BookingPolicy
from ..infrastructure.locks import day_locks
from ..infrastructure.repositories import (
    SqlAlchemyLedgerRepository,
    SqlAlchemyLocationRepository,
    SqlAlchemyUserRepository,
)
from ..models import BookingStatus
from ..schemas import (
    BookingRead,
    ComplianceRead,
    ComplianceRowRead,
    DashboardRead,
    DayDetailsRead,
    ImportResultRead,
    PromotionRead,
    UserRead,
)
from ..usecases import bookings as booking_usecase
from ..usecases import ledger as ledger_usecase
from ..usecases import reports as report_usecase
from ..usecases import users as user_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.auth import Principal
from ..utils.events import ledger_events
from ..utils.time import local_today

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log")


def resolve_compliance_period(year: Optional[int], month: Optional[int], today: date) -> tuple[int, int]:
    """Both or neither of year/month; neither means the month before `today`."""
    if year is None and month is None:
        return previous_month(today)
    if year is None or month is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="year and month must be given together")
    return year, month


@router.get("/locations/{location_id}/days/{day}", response_model=DayDetailsRead)
async def get_day_details(
    day: date,
    location_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> DayDetailsRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        try:
            details = await ledger_usecase.day_details(location_repo, ledger, location_id=location_id, day=day)
        except UnknownLocationError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")
    return DayDetailsRead(
        location_id=details.location.id,
        day=details.day,
        capacity=details.location.capacity,
        available_spots=details.available_spots,
        booked_users=[UserRead.from_db(user=user) for user in details.booked_users],
        waitlisted_users=[UserRead.from_db(user=user) for user in details.waitlisted_users],
    )


@router.post("/locations/{location_id}/days/{day}/waitlist/{user_id}/confirm", response_model=BookingRead)
async def confirm_from_waitlist(
    day: date,
    location_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: Principal = Depends(require_admin),
    policy: BookingPolicy = Depends(get_policy),
) -> BookingRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with day_locks.hold(location_id, [day]):
        async with session.begin():
            try:
                booking = await booking_usecase.confirm_from_waitlist(
                    location_repo,
                    ledger,
                    location_id=location_id,
                    user_id=user_id,
                    day=day,
                    policy=policy,
                )
            except UnknownLocationError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")
            except NotOnWaitlistError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found on waitlist")
            except AlreadyBookedError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="user already booked for this date")
            except CapacityExceededError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="capacity exceeded")

    ledger_events.publish("waitlist.promoted", location_id=location_id, days=(day,))
    try:
        emit_audit_log(
            action="waitlist.promoted",
            initiator="admin",
            actor_id=admin.user_id,
            user_id=user_id,
            location_id=location_id,
            days=[day],
            booking_id=booking.id,
            status_to=BookingStatus.CONFIRMED,
        )
    except RuntimeError:
        raise _audit_failed()
    return BookingRead.from_db(booking=booking)


@router.post("/locations/{location_id}/days/{day}/waitlist/promote", response_model=PromotionRead)
async def promote_next(
    day: date,
    location_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: Principal = Depends(require_admin),
    policy: BookingPolicy = Depends(get_policy),
) -> PromotionRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with day_locks.hold(location_id, [day]):
        async with session.begin():
            try:
                booking, user = await booking_usecase.promote_next(
                    location_repo,
                    ledger,
                    location_id=location_id,
                    day=day,
                    policy=policy,
                )
            except UnknownLocationError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")
            except NotOnWaitlistError:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="waitlist is empty")
            except AlreadyBookedError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="user already booked for this date")
            except CapacityExceededError:
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="capacity exceeded")

    ledger_events.publish("waitlist.promoted", location_id=location_id, days=(day,))
    try:
        emit_audit_log(
            action="waitlist.promoted",
            initiator="admin",
            actor_id=admin.user_id,
            user_id=user.id,
            location_id=location_id,
            days=[day],
            booking_id=booking.id,
            status_to=BookingStatus.CONFIRMED,
            extra={"fifo": True},
        )
    except RuntimeError:
        raise _audit_failed()
    return PromotionRead(booking=BookingRead.from_db(booking=booking), user=UserRead.from_db(user=user))


@router.get("/dashboard", response_model=DashboardRead)
async def dashboard(session: AsyncSession = Depends(get_session)) -> DashboardRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        stats = await report_usecase.dashboard_stats(location_repo, ledger, today=local_today())
    return DashboardRead.from_stats(stats)


@router.get("/compliance", response_model=ComplianceRead)
async def compliance(
    year: Optional[int] = Query(default=None, ge=2000, le=2100),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    threshold: Optional[int] = Query(default=None, ge=0),
    session: AsyncSession = Depends(get_session),
) -> ComplianceRead:
    report_year, report_month = resolve_compliance_period(year, month, local_today())
    limit = threshold if threshold is not None else get_settings().compliance_threshold
    user_repo = SqlAlchemyUserRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        rows = await report_usecase.compliance_report(
            user_repo,
            ledger,
            year=report_year,
            month=report_month,
            threshold=limit,
        )
    return ComplianceRead(
        year=report_year,
        month=report_month,
        threshold=limit,
        non_compliant=[ComplianceRowRead.from_row(row) for row in rows],
    )


@router.post("/users/import", response_model=ImportResultRead)
async def import_users(
    request: Request,
    session: AsyncSession = Depends(get_session),
    admin: Principal = Depends(require_admin),
) -> ImportResultRead:
    csv_text = (await request.body()).decode("utf-8-sig")
    user_repo = SqlAlchemyUserRepository(session)
    location_repo = SqlAlchemyLocationRepository(session)
    async with session.begin():
        try:
            result = await user_usecase.import_users(user_repo, location_repo, csv_text=csv_text)
        except MissingRequiredColumnError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if result.new_users_added:
        ledger_events.publish("users.imported")

    try:
        emit_audit_log(
            action="users.imported",
            initiator="admin",
            actor_id=admin.user_id,
            user_id=None,
            location_id=None,
            message=result.message,
            extra={"new_users_added": result.new_users_added, "issues": len(result.issues)},
        )
    except RuntimeError:
        raise _audit_failed()
    return ImportResultRead.from_result(result)
