"""
Prompt construction around the text-generation oracle.

The oracle only ever sees structured engine output. Every call degrades to a fixed
fallback message when the oracle is not configured or fails; nothing here raises.
"""

from __future__ import annotations

import json
import logging
from calendar import month_name
from dataclasses import asdict
from datetime import date
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError

from ..domain.calendar import days_in_month, is_weekend, month_bounds, next_month_start
from ..domain.repositories import LedgerRepository, TextGenerator, UserRepository
from ..domain.services import ComplianceRow, DayStatus
from ..models import Location, User
from .ledger import DayDetails
from .reports import DashboardStats

logger = logging.getLogger(__name__)

SUGGESTION_FALLBACK = "Sorry, I couldn't process that request. Please try rephrasing or select dates manually."
INSIGHTS_FALLBACK = "AI insights are currently unavailable."
WAITLIST_FALLBACK = "Sorry, I encountered an error while generating suggestions. Please try again."
COMPLIANCE_FALLBACK = "Could not generate the compliance report due to an AI service error."
COMPLIANCE_ALL_CLEAR = "Great news! All associates met the booking policy requirements last month."

_BOOKING_INSTRUCTION = """You are an office desk booking assistant. Turn the user's request into concrete dates.
- The calendar lists every day of the month with a status: available, waitlist, full, weekend, holiday or past, plus its booking percentage.
- Only pick days marked available or waitlist. Never pick full, weekend, holiday or past days.
- "Quiet days" or "focus time": prefer the lowest booking percentage.
- "Collaboration days" or "busy days": prefer the highest booking percentage that is not full.
- "Match my team": prefer the teammate dates when they are provided.
- Reply with datesToBook (YYYY-MM-DD strings) and a short suggestion explaining the choice."""

_INSIGHTS_INSTRUCTION = """You are a concise data analyst for an office space administrator.
You receive booking statistics for several office locations on one day.
Reply with a markdown bullet list (*) of the most important trends, anomalies and actions:
high utilization, capacity pressure, unusual cancellation rates. No greetings."""

_WAITLIST_INSTRUCTION = """You are an HR administrator assistant reviewing a desk waitlist.
- Prefer confirming employees whose teammates are already booked that day.
- Start with a one-sentence summary, then a '### Recommendations' heading.
- List each recommended user with their name in bold and a short reason.
- There are {spots} spot(s) available. Never recommend more people than that.
- Be direct and professional."""

_COMPLIANCE_INSTRUCTION = """You are an HR compliance analyst.
Policy: associates must book at least {threshold} office days per month.
You receive the associates who missed the policy last month.
Reply in markdown: a one-sentence summary, a '### Non-Compliant Associates' heading,
then each associate with bold name, employee ID and booking count. No greetings."""


class BookingSuggestion(BaseModel):
    datesToBook: list[str] = Field(default_factory=list)
    suggestion: str = ""


def _day_label(day: date, status: DayStatus | None, capacity: int, holidays: Mapping[date, str], cutoff: date) -> str:
    if is_weekend(day):
        return "weekend (N/A)"
    if day in holidays:
        return f"holiday ({holidays[day]}) (N/A)"
    if status is None or day < cutoff:
        return "past (N/A)"
    occupancy = f"{round(status.bookings / capacity * 100)}% booked"
    if status.is_full and status.is_waitlist_full:
        return f"full ({occupancy})"
    if status.is_full:
        return f"waitlist ({occupancy})"
    return f"available ({occupancy})"


def calendar_status_summary(
    *,
    location: Location,
    year: int,
    month: int,
    monthly_status: Mapping[date, DayStatus],
    holidays: Mapping[date, str],
    today: date,
) -> str:
    """One line per day of the month. Days before next month are reported as past."""
    cutoff = next_month_start(today)
    lines = [
        f"{day.isoformat()}: {_day_label(day, monthly_status.get(day), location.capacity, holidays, cutoff)}"
        for day in days_in_month(year, month)
    ]
    return "\n".join(lines)


async def teammate_booking_dates(
    user_repo: UserRepository,
    ledger: LedgerRepository,
    *,
    user: User,
    year: int,
    month: int,
) -> list[date]:
    if user.team_id is None:
        return []
    teammates = await user_repo.list_teammates(user.team_id, exclude_user_id=user.id)
    start, end = month_bounds(year, month)
    return await ledger.confirmed_days_for_users([mate.id for mate in teammates], start, end)


def _mentions_team(prompt: str) -> bool:
    lowered = prompt.lower()
    return "team" in lowered or "teammate" in lowered


async def suggest_booking_dates(
    generator: TextGenerator | None,
    user_repo: UserRepository,
    ledger: LedgerRepository,
    *,
    user: User,
    location: Location,
    prompt: str,
    year: int,
    month: int,
    monthly_status: Mapping[date, DayStatus],
    holidays: Mapping[date, str],
    today: date,
) -> BookingSuggestion:
    if generator is None or not prompt.strip():
        return BookingSuggestion(suggestion=SUGGESTION_FALLBACK)

    summary = calendar_status_summary(
        location=location,
        year=year,
        month=month,
        monthly_status=monthly_status,
        holidays=holidays,
        today=today,
    )
    teammate_dates: list[date] = []
    if _mentions_team(prompt):
        teammate_dates = await teammate_booking_dates(user_repo, ledger, user=user, year=year, month=month)

    parts = [
        f'User Request: "{prompt.strip()}"',
        f"Calendar Context for {month_name[month]} {year}:\n{summary}",
    ]
    if teammate_dates:
        parts.append("Teammate's Scheduled Dates: " + ", ".join(d.isoformat() for d in teammate_dates))

    try:
        raw = await generator.generate(
            "\n\n".join(parts),
            system_instruction=_BOOKING_INSTRUCTION,
            response_schema=BookingSuggestion,
        )
        parsed = BookingSuggestion.model_validate_json(raw.strip())
    except ValidationError:
        logger.warning("booking suggestion was not valid JSON")
        return BookingSuggestion(suggestion=SUGGESTION_FALLBACK)
    except Exception:
        logger.exception("booking suggestion failed")
        return BookingSuggestion(suggestion=SUGGESTION_FALLBACK)

    start, end = month_bounds(year, month)
    kept: list[str] = []
    for raw_day in parsed.datesToBook:
        try:
            day = date.fromisoformat(raw_day)
        except ValueError:
            continue
        if start <= day < end and raw_day not in kept:
            kept.append(raw_day)
    return BookingSuggestion(datesToBook=kept, suggestion=parsed.suggestion)


async def _generate_or(generator: TextGenerator | None, fallback: str, prompt: str, instruction: str) -> str:
    if generator is None:
        return fallback
    try:
        text = await generator.generate(prompt, system_instruction=instruction)
    except Exception:
        logger.exception("text generation failed")
        return fallback
    return text.strip() or fallback


async def dashboard_insights(generator: TextGenerator | None, stats: DashboardStats) -> str:
    payload = json.dumps(asdict(stats), default=str, indent=2)
    return await _generate_or(
        generator,
        INSIGHTS_FALLBACK,
        f"Here is the data for analysis:\n{payload}",
        _INSIGHTS_INSTRUCTION,
    )


async def waitlist_recommendation(generator: TextGenerator | None, details: DayDetails, prompt: str) -> str:
    waitlist = [{"id": u.employee_id, "name": u.name, "teamId": u.team_id} for u in details.waitlisted_users]
    booked_teams = sorted({u.team_id for u in details.booked_users if u.team_id is not None})
    body = "\n\n".join(
        [
            f'Admin Request: "{prompt.strip()}"',
            f"Context for Date: {details.day.isoformat()}\nAvailable Spots: {details.available_spots}",
            f"Waitlisted Employees:\n{json.dumps(waitlist, indent=2)}",
            f"Team IDs of already booked employees: [{', '.join(str(t) for t in booked_teams)}]",
        ]
    )
    return await _generate_or(
        generator,
        WAITLIST_FALLBACK,
        body,
        _WAITLIST_INSTRUCTION.format(spots=details.available_spots),
    )


async def compliance_narrative(generator: TextGenerator | None, rows: list[ComplianceRow], *, threshold: int) -> str:
    if not rows:
        return COMPLIANCE_ALL_CLEAR
    data = [{"name": r.name, "employeeId": r.employee_id, "bookingCount": r.booking_count} for r in rows]
    return await _generate_or(
        generator,
        COMPLIANCE_FALLBACK,
        f"Compliance Data for Last Month:\n{json.dumps(data, indent=2)}",
        _COMPLIANCE_INSTRUCTION.format(threshold=threshold),
    )
