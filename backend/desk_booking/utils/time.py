from datetime import date, datetime, timedelta, timezone
from threading import Lock
from zoneinfo import ZoneInfo

from ..config import get_settings


def local_today(tz_name: str | None = None) -> date:
    tz = ZoneInfo(tz_name or get_settings().timezone)
    return datetime.now(tz).date()


class MonotonicClock:
    """UTC-naive timestamps, strictly increasing within the process."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        with self._lock:
            current = datetime.now(timezone.utc).replace(tzinfo=None)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current


waitlist_clock = MonotonicClock()
