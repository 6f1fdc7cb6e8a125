from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

import pytest
from desk_booking.models import Booking, BookingStatus, Location, Role, User, WaitlistEntry


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InMemoryStore:
    def __init__(self) -> None:
        self.locations: dict[int, Location] = {}
        self.users: dict[int, User] = {}
        self.bookings: list[Booking] = []
        self.waitlist: list[WaitlistEntry] = []
        self._next_id = 1

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def add_location(self, name: str = "Pune", capacity: int = 2) -> Location:
        location = Location(id=self.next_id(), name=name, capacity=capacity)
        self.locations[location.id] = location
        return location

    def add_user(
        self,
        location: Location,
        *,
        name: str = "Associate",
        email: Optional[str] = None,
        role: Role = Role.ASSOCIATE,
        team_id: Optional[int] = None,
    ) -> User:
        user_id = self.next_id()
        user = User(
            id=user_id,
            employee_id=f"E{user_id}",
            name=name,
            email=email or f"user{user_id}@example.com",
            role=role,
            location_id=location.id,
            team_id=team_id,
            created_at=_utc_now_naive(),
        )
        self.users[user.id] = user
        return user

    def location_of(self, user_id: int) -> int:
        return self.users[user_id].location_id


class FakeLocationRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, location_id: int) -> Location | None:
        return self.store.locations.get(location_id)

    async def list_all(self) -> list[Location]:
        return sorted(self.store.locations.values(), key=lambda loc: loc.id)


class FakeUserRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, user_id: int) -> User | None:
        return self.store.users.get(user_id)

    async def find_by_email(self, email: str, role: Role) -> User | None:
        for user in self.store.users.values():
            if user.email.lower() == email.strip().lower() and user.role == role:
                return user
        return None

    async def existing_emails(self) -> set[str]:
        return {user.email.lower() for user in self.store.users.values()}

    async def list_associates(self) -> list[User]:
        return sorted((u for u in self.store.users.values() if u.role == Role.ASSOCIATE), key=lambda u: u.id)

    async def list_teammates(self, team_id: int, *, exclude_user_id: int) -> list[User]:
        return [u for u in self.store.users.values() if u.team_id == team_id and u.id != exclude_user_id]

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
            id=self.store.next_id(),
            employee_id=employee_id,
            name=name,
            email=email,
            role=role,
            location_id=location_id,
            team_id=team_id,
            created_at=_utc_now_naive(),
        )
        self.store.users[user.id] = user
        return user


class FakeLedger:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def _confirmed(self, location_id: int) -> list[Booking]:
        return [
            b
            for b in self.store.bookings
            if b.status == BookingStatus.CONFIRMED and self.store.location_of(b.user_id) == location_id
        ]

    def _queued(self, location_id: int) -> list[WaitlistEntry]:
        return [e for e in self.store.waitlist if self.store.location_of(e.user_id) == location_id]

    async def confirmed_count(self, location_id: int, day: date) -> int:
        return sum(1 for b in self._confirmed(location_id) if b.day == day)

    async def waitlist_count(self, location_id: int, day: date) -> int:
        return sum(1 for e in self._queued(location_id) if e.day == day)

    async def confirmed_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]:
        counts: dict[date, int] = {}
        for b in self._confirmed(location_id):
            if start <= b.day < end:
                counts[b.day] = counts.get(b.day, 0) + 1
        return counts

    async def waitlist_counts_by_day(self, location_id: int, start: date, end: date) -> dict[date, int]:
        counts: dict[date, int] = {}
        for e in self._queued(location_id):
            if start <= e.day < end:
                counts[e.day] = counts.get(e.day, 0) + 1
        return counts

    async def user_has_confirmed(self, user_id: int, day: date) -> bool:
        return any(
            b.user_id == user_id and b.day == day and b.status == BookingStatus.CONFIRMED for b in self.store.bookings
        )

    async def get_waitlist_entry(self, user_id: int, day: date) -> WaitlistEntry | None:
        return next((e for e in self.store.waitlist if e.user_id == user_id and e.day == day), None)

    async def create_booking(self, user_id: int, day: date, status: BookingStatus) -> Booking:
        now = _utc_now_naive()
        booking = Booking(
            id=self.store.next_id(), user_id=user_id, day=day, status=status, created_at=now, updated_at=now
        )
        self.store.bookings.append(booking)
        return booking

    async def get_booking_for_user(self, booking_id: int, user_id: int) -> Booking | None:
        return next((b for b in self.store.bookings if b.id == booking_id and b.user_id == user_id), None)

    async def cancel(self, booking: Booking) -> Booking:
        return booking

    async def list_bookings_for_user(self, user_id: int) -> list[Booking]:
        return sorted((b for b in self.store.bookings if b.user_id == user_id), key=lambda b: (b.day, b.id))

    async def confirmed_days_for_users(self, user_ids: Iterable[int], start: date, end: date) -> list[date]:
        ids = set(user_ids)
        return sorted(
            {
                b.day
                for b in self.store.bookings
                if b.user_id in ids and start <= b.day < end and b.status == BookingStatus.CONFIRMED
            }
        )

    async def enqueue(self, user_id: int, day: date, timestamp: datetime) -> WaitlistEntry:
        entry = WaitlistEntry(id=self.store.next_id(), user_id=user_id, day=day, timestamp=timestamp)
        self.store.waitlist.append(entry)
        return entry

    async def remove_entry(self, entry: WaitlistEntry) -> None:
        self.store.waitlist = [e for e in self.store.waitlist if e.id != entry.id]

    async def ordered_waitlist(self, location_id: int, day: date) -> list[tuple[WaitlistEntry, User]]:
        entries = sorted((e for e in self._queued(location_id) if e.day == day), key=lambda e: (e.timestamp, e.id))
        return [(e, self.store.users[e.user_id]) for e in entries]

    async def booked_users(self, location_id: int, day: date) -> list[User]:
        ids = sorted({b.user_id for b in self._confirmed(location_id) if b.day == day})
        return [self.store.users[user_id] for user_id in ids]

    async def confirmed_counts_by_user(self, start: date, end: date) -> dict[int, int]:
        counts: dict[int, int] = {}
        for b in self.store.bookings:
            if b.status == BookingStatus.CONFIRMED and start <= b.day < end:
                counts[b.user_id] = counts.get(b.user_id, 0) + 1
        return counts

    async def booking_counts_by_location(self, start: date, end: date, status: BookingStatus) -> dict[int, int]:
        counts: dict[int, int] = {}
        for b in self.store.bookings:
            if b.status == status and start <= b.day < end:
                location_id = self.store.location_of(b.user_id)
                counts[location_id] = counts.get(location_id, 0) + 1
        return counts

    async def waitlist_counts_by_location(self, day: date) -> dict[int, int]:
        counts: dict[int, int] = {}
        for e in self.store.waitlist:
            if day <= e.day < day + timedelta(days=1):
                location_id = self.store.location_of(e.user_id)
                counts[location_id] = counts.get(location_id, 0) + 1
        return counts


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def location_repo(store: InMemoryStore) -> FakeLocationRepo:
    return FakeLocationRepo(store)


@pytest.fixture
def user_repo(store: InMemoryStore) -> FakeUserRepo:
    return FakeUserRepo(store)


@pytest.fixture
def ledger(store: InMemoryStore) -> FakeLedger:
    return FakeLedger(store)
