from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional, Tuple, cast

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import LedgerRepository, LocationRepository, UserRepository
from ..models import Booking, BookingStatus, Location, Role, User, WaitlistEntry


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyLocationRepository(LocationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, location_id: int) -> Location | None:
        return await self.session.get(Location, location_id)

    async def list_all(self) -> List[Location]:
        rows = await self.session.scalars(select(Location).order_by(Location.id))
        return list(rows.all())

    async def create(self, *, name: str, capacity: int) -> Location:
        location = Location(name=name, capacity=capacity)
        self.session.add(location)
        await self.session.flush()
        return location


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def find_by_email(self, email: str, role: Role) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower(), User.role == role)
        return await self.session.scalar(stmt)

    async def existing_emails(self) -> set[str]:
        rows = await self.session.scalars(select(User.email))
        return {email.lower() for email in rows.all()}

    async def list_associates(self) -> List[User]:
        rows = await self.session.scalars(select(User).where(User.role == Role.ASSOCIATE).order_by(User.id))
        return list(rows.all())

    async def list_teammates(self, team_id: int, *, exclude_user_id: int) -> List[User]:
        stmt = select(User).where(User.team_id == team_id, User.id != exclude_user_id).order_by(User.id)
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def create(
        self,
        *,
        employee_id: str,
        name: str,
        email: str,
        role: Role,
        location_id: int,
        team_id: int | None,
    ) -> User:
        user = User(
            employee_id=employee_id,
            name=name,
            email=email.strip().lower(),
            role=role,
            location_id=location_id,
            team_id=team_id,
            created_at=_utc_now_naive(),
        )
        self.session.add(user)
        await self.session.flush()
        return user


class SqlAlchemyLedgerRepository(LedgerRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _location_users(location_id: int) -> Select[Tuple[int]]:
        return select(User.id).where(User.location_id == location_id)

    async def confirmed_count(self, location_id: int, day: date) -> int:
        stmt = select(func.count(Booking.id)).where(
            Booking.day == day,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.user_id.in_(self._location_users(location_id)),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def waitlist_count(self, location_id: int, day: date) -> int:
        stmt = select(func.count(WaitlistEntry.id)).where(
            WaitlistEntry.day == day,
            WaitlistEntry.user_id.in_(self._location_users(location_id)),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def confirmed_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]:
        stmt: Select[Tuple[date, Any]] = (
            select(Booking.day, func.count(Booking.id))
            .where(
                Booking.day >= start,
                Booking.day < end,
                Booking.status == BookingStatus.CONFIRMED,
                Booking.user_id.in_(self._location_users(location_id)),
            )
            .group_by(Booking.day)
        )
        rows = await self.session.execute(stmt)
        return {day: int(count) for day, count in rows.all()}

    async def waitlist_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]:
        stmt: Select[Tuple[date, Any]] = (
            select(WaitlistEntry.day, func.count(WaitlistEntry.id))
            .where(
                WaitlistEntry.day >= start,
                WaitlistEntry.day < end,
                WaitlistEntry.user_id.in_(self._location_users(location_id)),
            )
            .group_by(WaitlistEntry.day)
        )
        rows = await self.session.execute(stmt)
        return {day: int(count) for day, count in rows.all()}

    async def user_has_confirmed(self, user_id: int, day: date) -> bool:
        stmt = select(Booking.id).where(
            Booking.user_id == user_id,
            Booking.day == day,
            Booking.status == BookingStatus.CONFIRMED,
        )
        return await self.session.scalar(stmt.limit(1)) is not None

    async def get_waitlist_entry(self, user_id: int, day: date) -> WaitlistEntry | None:
        stmt = select(WaitlistEntry).where(WaitlistEntry.user_id == user_id, WaitlistEntry.day == day)
        return await self.session.scalar(stmt)

    async def create_booking(self, user_id: int, day: date, status: BookingStatus) -> Booking:
        now = _utc_now_naive()
        booking = Booking(user_id=user_id, day=day, status=status, created_at=now, updated_at=now)
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_booking_for_user(self, booking_id: int, user_id: int) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
        return await self.session.scalar(stmt)

    async def cancel(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def list_bookings_for_user(self, user_id: int) -> List[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.day, Booking.id)
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def confirmed_days_for_users(self, user_ids: Iterable[int], start: date, end: date) -> List[date]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = (
            select(Booking.day)
            .where(
                Booking.user_id.in_(ids),
                Booking.day >= start,
                Booking.day < end,
                Booking.status == BookingStatus.CONFIRMED,
            )
            .distinct()
            .order_by(Booking.day)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def enqueue(self, user_id: int, day: date, timestamp: datetime) -> WaitlistEntry:
        entry = WaitlistEntry(user_id=user_id, day=day, timestamp=timestamp)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def remove_entry(self, entry: WaitlistEntry) -> None:
        await self.session.execute(delete(WaitlistEntry).where(WaitlistEntry.id == entry.id))

    async def ordered_waitlist(self, location_id: int, day: date) -> List[Tuple[WaitlistEntry, User]]:
        stmt: Select[Tuple[WaitlistEntry, User]] = (
            select(WaitlistEntry, User)
            .join(User, WaitlistEntry.user_id == User.id)
            .where(WaitlistEntry.day == day, User.location_id == location_id)
            # id breaks ties when the backend truncates sub-second precision
            .order_by(WaitlistEntry.timestamp, WaitlistEntry.id)
        )
        rows = await self.session.execute(stmt)
        return cast(List[Tuple[WaitlistEntry, User]], [tuple(row) for row in rows.all()])

    async def booked_users(self, location_id: int, day: date) -> List[User]:
        stmt = (
            select(User)
            .join(Booking, Booking.user_id == User.id)
            .where(
                Booking.day == day,
                Booking.status == BookingStatus.CONFIRMED,
                User.location_id == location_id,
            )
            .distinct()
            .order_by(User.id)
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def confirmed_counts_by_user(self, start: date, end: date) -> dict[int, int]:
        stmt: Select[Tuple[int, Any]] = (
            select(Booking.user_id, func.count(Booking.id))
            .where(Booking.day >= start, Booking.day < end, Booking.status == BookingStatus.CONFIRMED)
            .group_by(Booking.user_id)
        )
        rows = await self.session.execute(stmt)
        return {user_id: int(count) for user_id, count in rows.all()}

    async def booking_counts_by_location(self, start: date, end: date, status: BookingStatus) -> dict[int, int]:
        stmt: Select[Tuple[int, Any]] = (
            select(User.location_id, func.count(Booking.id))
            .join(User, Booking.user_id == User.id)
            .where(Booking.day >= start, Booking.day < end, Booking.status == status)
            .group_by(User.location_id)
        )
        rows = await self.session.execute(stmt)
        return {location_id: int(count) for location_id, count in rows.all()}

    async def waitlist_counts_by_location(self, day: date) -> dict[int, int]:
        stmt: Select[Tuple[int, Any]] = (
            select(User.location_id, func.count(WaitlistEntry.id))
            .join(User, WaitlistEntry.user_id == User.id)
            .where(WaitlistEntry.day >= day, WaitlistEntry.day < day + timedelta(days=1))
            .group_by(User.location_id)
        )
        rows = await self.session.execute(stmt)
        return {location_id: int(count) for location_id, count in rows.all()}
