from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_principal, get_policy, get_session
from ..domain.calendar import holidays_for_year
from ..domain.errors import UnknownLocationError
from ..domain.services import BookingPolicy
from ..infrastructure.repositories import SqlAlchemyLedgerRepository, SqlAlchemyLocationRepository
from ..schemas import DayStatusRead, HolidayRead, LedgerVersionRead, MonthlyStatusRead
from ..usecases import ledger as ledger_usecase
from ..utils.auth import Principal
from ..utils.events import ledger_events

router = APIRouter(tags=["calendar"])


@router.get("/holidays/{year}", response_model=List[HolidayRead])
async def list_holidays(year: int = Path(..., ge=2000, le=2100)) -> list[HolidayRead]:
    return [HolidayRead(day=day, name=name) for day, name in sorted(holidays_for_year(year).items())]


@router.get("/ledger/version", response_model=LedgerVersionRead)
async def ledger_version(_: Principal = Depends(get_current_principal)) -> LedgerVersionRead:
    return LedgerVersionRead(version=ledger_events.version)


@router.get("/locations/{location_id}/status", response_model=MonthlyStatusRead)
async def monthly_status(
    location_id: int = Path(..., ge=1),
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    session: AsyncSession = Depends(get_session),
    policy: BookingPolicy = Depends(get_policy),
    _: Principal = Depends(get_current_principal),
) -> MonthlyStatusRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        try:
            statuses = await ledger_usecase.monthly_status(
                location_repo,
                ledger,
                location_id=location_id,
                year=year,
                month=month,
                waitlist_cap=policy.waitlist_cap,
            )
        except UnknownLocationError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")

    holidays: dict[date, str] = holidays_for_year(year)
    return MonthlyStatusRead(
        location_id=location_id,
        year=year,
        month=month,
        days=[
            DayStatusRead.from_status(day=day, status=day_status, holiday=holidays.get(day))
            for day, day_status in sorted(statuses.items())
        ],
    )
