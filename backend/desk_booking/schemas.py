from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from .domain.services import ComplianceRow, DayStatus
from .models import Booking, BookingStatus, Role, User
from .usecases.bookings import SubmitResult
from .usecases.reports import DashboardStats, LocationStats
from .usecases.users import ImportResult


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    role: Role


class UserRead(BaseModel):
    user_id: int
    employee_id: str
    name: str
    email: str
    role: Role
    location_id: int
    team_id: Optional[int] = None

    @classmethod
    def from_db(cls, *, user: User) -> "UserRead":
        return cls(
            user_id=user.id,
            employee_id=user.employee_id,
            name=user.name,
            email=user.email,
            role=user.role,
            location_id=user.location_id,
            team_id=user.team_id,
        )


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class DayStatusRead(BaseModel):
    day: date
    bookings: int
    waitlist: int
    is_full: bool
    is_waitlist_full: bool
    holiday: Optional[str] = None

    @classmethod
    def from_status(cls, *, day: date, status: DayStatus, holiday: Optional[str] = None) -> "DayStatusRead":
        return cls(
            day=day,
            bookings=status.bookings,
            waitlist=status.waitlist,
            is_full=status.is_full,
            is_waitlist_full=status.is_waitlist_full,
            holiday=holiday,
        )


class MonthlyStatusRead(BaseModel):
    location_id: int
    year: int
    month: int
    days: list[DayStatusRead]


class DayDetailsRead(BaseModel):
    location_id: int
    day: date
    capacity: int
    available_spots: int
    booked_users: list[UserRead]
    waitlisted_users: list[UserRead]


class BookingSubmit(BaseModel):
    dates: list[date] = Field(min_length=1, max_length=31)
    year: Optional[int] = Field(default=None, ge=2000, le=2100)
    month: Optional[int] = Field(default=None, ge=1, le=12)


class SubmitResultRead(BaseModel):
    booked_dates: list[date]
    already_booked_dates: list[date]
    full_dates: list[date]
    message: str

    @classmethod
    def from_result(cls, result: SubmitResult) -> "SubmitResultRead":
        return cls(
            booked_dates=result.booked_dates,
            already_booked_dates=result.already_booked_dates,
            full_dates=result.full_dates,
            message=result.message,
        )


class BookingRead(BaseModel):
    booking_id: int
    user_id: int
    day: date
    status: BookingStatus

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(booking_id=booking.id, user_id=booking.user_id, day=booking.day, status=booking.status)


class WaitlistJoin(BaseModel):
    day: date


class WaitlistEntryRead(BaseModel):
    user_id: int
    day: date
    created: bool


class PromotionRead(BaseModel):
    booking: BookingRead
    user: UserRead


class LocationStatsRead(BaseModel):
    location_id: int
    location_name: str
    capacity: int
    booked: int
    waitlisted: int
    cancellations_today: int
    cancellations_month: int

    @classmethod
    def from_stats(cls, stats: LocationStats) -> "LocationStatsRead":
        return cls(**stats.__dict__)


class DashboardRead(BaseModel):
    stats_for_date: date
    total_capacity: int
    total_booked_today: int
    total_waitlisted_today: int
    total_cancellations_today: int
    location_stats: list[LocationStatsRead]

    @classmethod
    def from_stats(cls, stats: DashboardStats) -> "DashboardRead":
        return cls(
            stats_for_date=stats.stats_for_date,
            total_capacity=stats.total_capacity,
            total_booked_today=stats.total_booked_today,
            total_waitlisted_today=stats.total_waitlisted_today,
            total_cancellations_today=stats.total_cancellations_today,
            location_stats=[LocationStatsRead.from_stats(row) for row in stats.location_stats],
        )


class ComplianceRowRead(BaseModel):
    user_id: int
    employee_id: str
    name: str
    booking_count: int

    @classmethod
    def from_row(cls, row: ComplianceRow) -> "ComplianceRowRead":
        return cls(user_id=row.user_id, employee_id=row.employee_id, name=row.name, booking_count=row.booking_count)


class ComplianceRead(BaseModel):
    year: int
    month: int
    threshold: int
    non_compliant: list[ComplianceRowRead]


class ImportResultRead(BaseModel):
    success: bool
    new_users_added: int
    message: str

    @classmethod
    def from_result(cls, result: ImportResult) -> "ImportResultRead":
        return cls(success=result.success, new_users_added=result.new_users_added, message=result.message)


class AssistantPrompt(BaseModel):
    prompt: str = Field(min_length=1, max_length=2000)
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)


class BookingSuggestionRead(BaseModel):
    dates_to_book: list[date]
    suggestion: str


class TextRead(BaseModel):
    text: str


class HolidayRead(BaseModel):
    day: date
    name: str


class LedgerVersionRead(BaseModel):
    version: int
