from datetime import date


class DomainError(Exception):
    """Base class for every rejection raised by the booking engine."""


class InvalidCredentialsError(DomainError):
    pass


class UnknownLocationError(DomainError):
    pass


class UnknownUserError(DomainError):
    pass


class EmptySelectionError(DomainError):
    pass


class NonWorkingDayError(DomainError):
    def __init__(self, days: list[date]) -> None:
        self.days = days
        listed = ", ".join(d.isoformat() for d in days)
        super().__init__(f"weekends and holidays cannot be booked: {listed}")


class WeeklyMinimumViolationError(DomainError):
    def __init__(self, week_start: date, minimum: int) -> None:
        self.week_start = week_start
        self.minimum = minimum
        super().__init__(
            f"You must select at least {minimum} days for the week of {week_start.isoformat()}. "
            "This rule is waived if some days in the week are already full."
        )


class NotOnWaitlistError(DomainError):
    pass


class AlreadyBookedError(DomainError):
    pass


class WaitlistFullError(DomainError):
    pass


class CapacityExceededError(DomainError):
    pass


class BookingNotFoundError(DomainError):
    pass


class MissingRequiredColumnError(DomainError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f'Import failed: Missing required header "{column}".')
