from datetime import date

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_principal, get_policy, get_session, get_text_generator, require_admin
from ..domain.calendar import holidays_for_year
from ..domain.errors import UnknownLocationError, UnknownUserError
from ..domain.repositories import TextGenerator
from ..domain.services import BookingPolicy
from ..infrastructure.repositories import (
    SqlAlchemyLedgerRepository,
    SqlAlchemyLocationRepository,
    SqlAlchemyUserRepository,
)
from ..schemas import AssistantPrompt, BookingSuggestionRead, TextRead
from ..usecases import assistant as assistant_usecase
from ..usecases import ledger as ledger_usecase
from ..usecases import reports as report_usecase
from ..utils.auth import Principal
from ..utils.time import local_today
from .admin import resolve_compliance_period

router = APIRouter(prefix="/me/assistant", tags=["assistant"], dependencies=[Depends(get_current_principal)])
admin_router = APIRouter(prefix="/admin", tags=["assistant"], dependencies=[Depends(require_admin)])


@router.post("/suggest", response_model=BookingSuggestionRead)
async def suggest_dates(
    payload: AssistantPrompt,
    session: AsyncSession = Depends(get_session),
    principal: Principal = Depends(get_current_principal),
    policy: BookingPolicy = Depends(get_policy),
    generator: TextGenerator | None = Depends(get_text_generator),
) -> BookingSuggestionRead:
    user_repo = SqlAlchemyUserRepository(session)
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        user = await user_repo.get(principal.user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
        try:
            location = await ledger_usecase.require_location(location_repo, user.location_id)
            statuses = await ledger_usecase.monthly_status(
                location_repo,
                ledger,
                location_id=location.id,
                year=payload.year,
                month=payload.month,
                waitlist_cap=policy.waitlist_cap,
            )
        except (UnknownLocationError, UnknownUserError):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")
        suggestion = await assistant_usecase.suggest_booking_dates(
            generator,
            user_repo,
            ledger,
            user=user,
            location=location,
            prompt=payload.prompt,
            year=payload.year,
            month=payload.month,
            monthly_status=statuses,
            holidays=holidays_for_year(payload.year),
            today=local_today(),
        )
    return BookingSuggestionRead(
        dates_to_book=[date.fromisoformat(raw) for raw in suggestion.datesToBook],
        suggestion=suggestion.suggestion,
    )


@admin_router.get("/dashboard/insights", response_model=TextRead)
async def dashboard_insights(
    session: AsyncSession = Depends(get_session),
    generator: TextGenerator | None = Depends(get_text_generator),
) -> TextRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        stats = await report_usecase.dashboard_stats(location_repo, ledger, today=local_today())
    return TextRead(text=await assistant_usecase.dashboard_insights(generator, stats))


@admin_router.post("/locations/{location_id}/days/{day}/waitlist/recommendation", response_model=TextRead)
async def waitlist_recommendation(
    day: date,
    location_id: int = Path(..., ge=1),
    prompt: str = Body("Who should I confirm from the waitlist?", embed=True, max_length=2000),
    session: AsyncSession = Depends(get_session),
    generator: TextGenerator | None = Depends(get_text_generator),
) -> TextRead:
    location_repo = SqlAlchemyLocationRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        try:
            details = await ledger_usecase.day_details(location_repo, ledger, location_id=location_id, day=day)
        except UnknownLocationError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="location not found")
    return TextRead(text=await assistant_usecase.waitlist_recommendation(generator, details, prompt))


@admin_router.get("/compliance/report", response_model=TextRead)
async def compliance_report(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    session: AsyncSession = Depends(get_session),
    generator: TextGenerator | None = Depends(get_text_generator),
) -> TextRead:
    report_year, report_month = resolve_compliance_period(year, month, local_today())
    threshold = get_settings().compliance_threshold
    user_repo = SqlAlchemyUserRepository(session)
    ledger = SqlAlchemyLedgerRepository(session)
    async with session.begin():
        rows = await report_usecase.compliance_report(
            user_repo,
            ledger,
            year=report_year,
            month=report_month,
            threshold=threshold,
        )
    return TextRead(text=await assistant_usecase.compliance_narrative(generator, rows, threshold=threshold))
