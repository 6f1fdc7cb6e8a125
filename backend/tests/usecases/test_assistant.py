import json
from datetime import date, datetime
from typing import Optional

import pytest
from desk_booking.domain.services import ComplianceRow, DayStatus
from desk_booking.models import BookingStatus
from desk_booking.usecases import assistant as uc
from desk_booking.usecases import ledger as ledger_uc
from desk_booking.usecases.reports import DashboardStats


class FakeGenerator:
    def __init__(self, reply: str = "", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []
        self.instructions: list[Optional[str]] = []

    async def generate(self, prompt: str, *, system_instruction=None, response_schema=None) -> str:
        self.prompts.append(prompt)
        self.instructions.append(system_instruction)
        if self.error is not None:
            raise self.error
        return self.reply


def _june_status() -> dict[date, DayStatus]:
    statuses = {}
    for day in range(1, 31):
        statuses[date(2025, 6, day)] = DayStatus(bookings=1, waitlist=0, is_full=False, is_waitlist_full=False)
    statuses[date(2025, 6, 11)] = DayStatus(bookings=2, waitlist=20, is_full=True, is_waitlist_full=True)
    return statuses


async def _suggest(store, user_repo, ledger, generator, prompt: str = "quiet days next week"):
    location = store.add_location(capacity=2)
    user = store.add_user(location, team_id=7)
    mate = store.add_user(location, team_id=7)
    await ledger.create_booking(mate.id, date(2025, 6, 12), BookingStatus.CONFIRMED)
    return await uc.suggest_booking_dates(
        generator,
        user_repo,
        ledger,
        user=user,
        location=location,
        prompt=prompt,
        year=2025,
        month=6,
        monthly_status=_june_status(),
        holidays={},
        today=date(2025, 5, 20),
    )


def test_calendar_summary_labels_days() -> None:
    class Loc:
        capacity = 2

    summary = uc.calendar_status_summary(
        location=Loc(),
        year=2025,
        month=6,
        monthly_status=_june_status(),
        holidays={date(2025, 6, 13): "Closure"},
        today=date(2025, 5, 20),
    )
    lines = summary.splitlines()
    assert len(lines) == 30
    assert "2025-06-07: weekend (N/A)" in lines
    assert "2025-06-09: available (50% booked)" in lines
    assert "2025-06-11: full (100% booked)" in lines
    assert "2025-06-13: holiday (Closure) (N/A)" in lines


@pytest.mark.asyncio
async def test_suggestion_without_generator_falls_back(store, user_repo, ledger) -> None:
    suggestion = await _suggest(store, user_repo, ledger, None)
    assert suggestion.datesToBook == []
    assert suggestion.suggestion == uc.SUGGESTION_FALLBACK


@pytest.mark.asyncio
async def test_suggestion_filters_dates_outside_month(store, user_repo, ledger) -> None:
    reply = json.dumps(
        {"datesToBook": ["2025-06-09", "2025-06-09", "2025-07-01", "not-a-date"], "suggestion": "Quiet Monday."}
    )
    generator = FakeGenerator(reply)
    suggestion = await _suggest(store, user_repo, ledger, generator)
    assert suggestion.datesToBook == ["2025-06-09"]
    assert suggestion.suggestion == "Quiet Monday."
    assert "Teammate" not in generator.prompts[0]


@pytest.mark.asyncio
async def test_suggestion_includes_teammate_dates(store, user_repo, ledger) -> None:
    generator = FakeGenerator('{"datesToBook": ["2025-06-12"], "suggestion": "With your team."}')
    await _suggest(store, user_repo, ledger, generator, prompt="match my team")
    assert "Teammate's Scheduled Dates: 2025-06-12" in generator.prompts[0]


@pytest.mark.asyncio
async def test_suggestion_with_invalid_json_falls_back(store, user_repo, ledger) -> None:
    suggestion = await _suggest(store, user_repo, ledger, FakeGenerator("Sure! Book Monday."))
    assert suggestion.suggestion == uc.SUGGESTION_FALLBACK


@pytest.mark.asyncio
async def test_insights_fall_back_on_error() -> None:
    stats = DashboardStats(date(2025, 7, 1), 10, 2, 0, 0, [])
    text = await uc.dashboard_insights(FakeGenerator(error=RuntimeError("down")), stats)
    assert text == uc.INSIGHTS_FALLBACK
    assert await uc.dashboard_insights(FakeGenerator("* Low usage"), stats) == "* Low usage"


@pytest.mark.asyncio
async def test_waitlist_recommendation_states_available_spots(store, location_repo, ledger) -> None:
    location = store.add_location(capacity=3)
    queued = store.add_user(location, name="Queued", team_id=4)
    await ledger.enqueue(queued.id, date(2025, 6, 10), datetime(2025, 6, 1, 9, 0))
    details = await ledger_uc.day_details(location_repo, ledger, location_id=location.id, day=date(2025, 6, 10))

    generator = FakeGenerator("### Recommendations")
    text = await uc.waitlist_recommendation(generator, details, "who first?")
    assert text == "### Recommendations"
    assert "Available Spots: 3" in generator.prompts[0]
    assert "3 spot(s) available" in generator.instructions[0]
    assert await uc.waitlist_recommendation(None, details, "who first?") == uc.WAITLIST_FALLBACK


@pytest.mark.asyncio
async def test_compliance_narrative_short_circuits_when_clear() -> None:
    generator = FakeGenerator("never used")
    assert await uc.compliance_narrative(generator, [], threshold=10) == uc.COMPLIANCE_ALL_CLEAR
    assert generator.prompts == []

    rows = [ComplianceRow(user_id=1, employee_id="E1", name="Nine", booking_count=9)]
    failing = FakeGenerator(error=RuntimeError("down"))
    assert await uc.compliance_narrative(failing, rows, threshold=10) == uc.COMPLIANCE_FALLBACK
