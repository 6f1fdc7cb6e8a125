from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from enum import StrEnum

from ..domain.errors import InvalidCredentialsError, MissingRequiredColumnError
from ..domain.repositories import LocationRepository, UserRepository
from ..models import Role, User

REQUIRED_COLUMNS = ("employeeId", "name", "email", "locationName")
MAX_REPORTED_ISSUES = 5


async def login(user_repo: UserRepository, *, email: str, role: Role) -> User:
    user = await user_repo.find_by_email(email, role)
    if user is None:
        raise InvalidCredentialsError("Invalid credentials or role. Please try again.")
    return user


class ImportIssueKind(StrEnum):
    DUPLICATE_EMAIL = "duplicate_email"
    UNKNOWN_LOCATION = "unknown_location"
    INVALID_ROW = "invalid_row"


@dataclass(frozen=True)
class ImportIssue:
    row: int
    kind: ImportIssueKind
    message: str


@dataclass
class ImportResult:
    new_users_added: int = 0
    issues: list[ImportIssue] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.new_users_added > 0

    @property
    def message(self) -> str:
        message = f"Successfully imported {self.new_users_added} new users."
        if self.issues:
            shown = "\n".join(issue.message for issue in self.issues[:MAX_REPORTED_ISSUES])
            message += f"\nEncountered {len(self.issues)} issues:\n{shown}"
            if len(self.issues) > MAX_REPORTED_ISSUES:
                message += "\n...and more."
        return message


def _parse_team_id(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    return int(raw.strip())


async def import_users(
    user_repo: UserRepository,
    location_repo: LocationRepository,
    *,
    csv_text: str,
) -> ImportResult:
    """
    Header problems abort the whole import before any write. Row problems skip that row
    only; valid rows are created as associates.
    """
    lines = [line for line in csv_text.splitlines() if line.strip()]
    if not lines:
        raise MissingRequiredColumnError(REQUIRED_COLUMNS[0])
    reader = csv.reader(io.StringIO("\n".join(lines)), skipinitialspace=True)
    rows = list(reader)
    header = [column.strip() for column in rows[0]]
    for column in REQUIRED_COLUMNS:
        if column not in header:
            raise MissingRequiredColumnError(column)

    locations = {location.name.lower(): location for location in await location_repo.list_all()}
    known_emails = await user_repo.existing_emails()
    result = ImportResult()

    for index, values in enumerate(rows[1:], start=2):
        entry = {column: (values[i].strip() if i < len(values) else "") for i, column in enumerate(header)}
        email = entry["email"].lower()
        if email in known_emails:
            result.issues.append(
                ImportIssue(index, ImportIssueKind.DUPLICATE_EMAIL, f'Skipped row {index}: Email "{entry["email"]}" already exists.')
            )
            continue
        location = locations.get(entry["locationName"].lower())
        if location is None:
            result.issues.append(
                ImportIssue(
                    index,
                    ImportIssueKind.UNKNOWN_LOCATION,
                    f'Skipped row {index}: Location "{entry["locationName"]}" not found.',
                )
            )
            continue
        if not (entry["employeeId"] and entry["name"] and email):
            result.issues.append(
                ImportIssue(index, ImportIssueKind.INVALID_ROW, f"Skipped row {index}: Required value missing.")
            )
            continue
        try:
            team_id = _parse_team_id(entry.get("teamId"))
        except ValueError:
            result.issues.append(
                ImportIssue(index, ImportIssueKind.INVALID_ROW, f'Skipped row {index}: Team "{entry["teamId"]}" is not a number.')
            )
            continue

        await user_repo.create(
            employee_id=entry["employeeId"],
            name=entry["name"],
            email=email,
            role=Role.ASSOCIATE,
            location_id=location.id,
            team_id=team_id,
        )
        known_emails.add(email)
        result.new_users_added += 1
    return result
