from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Protocol

from ..models import Booking, BookingStatus, Location, Role, User, WaitlistEntry


class LocationRepository(Protocol):
    async def get(self, location_id: int) -> Location | None: ...

    async def list_all(self) -> list[Location]: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...

    async def find_by_email(self, email: str, role: Role) -> User | None: ...

    async def existing_emails(self) -> set[str]: ...

    async def list_associates(self) -> list[User]: ...

    async def list_teammates(self, team_id: int, *, exclude_user_id: int) -> list[User]: ...

    async def create(
        self,
        *,
        employee_id: str,
        name: str,
        email: str,
        role: Role,
        location_id: int,
        team_id: int | None,
    ) -> User: ...


class LedgerRepository(Protocol):
    """Bookings and waitlist entries; the only store the booking engine writes to."""

    async def confirmed_count(self, location_id: int, day: date) -> int: ...

    async def waitlist_count(self, location_id: int, day: date) -> int: ...

    async def confirmed_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]: ...

    async def waitlist_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]: ...

    async def user_has_confirmed(self, user_id: int, day: date) -> bool: ...

    async def get_waitlist_entry(self, user_id: int, day: date) -> WaitlistEntry | None: ...

    async def create_booking(self, user_id: int, day: date, status: BookingStatus) -> Booking: ...

    async def get_booking_for_user(self, booking_id: int, user_id: int) -> Booking | None: ...

    async def cancel(self, booking: Booking) -> Booking: ...

    async def list_bookings_for_user(self, user_id: int) -> list[Booking]: ...

    async def confirmed_days_for_users(self, user_ids: Iterable[int], start: date, end: date) -> list[date]: ...

    async def enqueue(self, user_id: int, day: date, timestamp: datetime) -> WaitlistEntry: ...

    async def remove_entry(self, entry: WaitlistEntry) -> None: ...

    async def ordered_waitlist(self, location_id: int, day: date) -> list[tuple[WaitlistEntry, User]]: ...

    async def booked_users(self, location_id: int, day: date) -> list[User]: ...

    async def confirmed_counts_by_user(self, start: date, end: date) -> dict[int, int]: ...

    async def booking_counts_by_location(self, start: date, end: date, status: BookingStatus) -> dict[int, int]: ...

    async def waitlist_counts_by_location(self, day: date) -> dict[int, int]: ...


class TextGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        *,
        system_instruction: str | None = None,
        response_schema: type | None = None,
    ) -> str: ...
