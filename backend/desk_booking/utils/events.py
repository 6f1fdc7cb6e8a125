from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Literal

LedgerChangeKind = Literal[
    "bookings.submitted",
    "booking.cancelled",
    "waitlist.joined",
    "waitlist.left",
    "waitlist.promoted",
    "users.imported",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerChanged:
    kind: LedgerChangeKind
    version: int
    location_id: int | None = None
    days: tuple[date, ...] = field(default_factory=tuple)


Subscriber = Callable[[LedgerChanged], None]


class LedgerEventBus:
    """Publishes a LedgerChanged event after every committed mutation."""

    def __init__(self) -> None:
        self._version = 0
        self._subscribers: list[Subscriber] = []

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(
        self,
        kind: LedgerChangeKind,
        *,
        location_id: int | None = None,
        days: tuple[date, ...] = (),
    ) -> LedgerChanged:
        self._version += 1
        event = LedgerChanged(kind=kind, version=self._version, location_id=location_id, days=days)
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                # A broken subscriber must not undo an already committed mutation.
                logger.exception("ledger subscriber failed for %s", kind)
        return event


ledger_events = LedgerEventBus()
