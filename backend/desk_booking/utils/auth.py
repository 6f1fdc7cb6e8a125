from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

from ..models import Role


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: Role
    location_id: int

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def create_access_token(
    *,
    user_id: int,
    role: Role,
    location_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=30))
    payload = {"sub": str(user_id), "role": role.value, "loc": location_id, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> Principal:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        return Principal(user_id=int(sub), role=Role(payload.get("role")), location_id=int(payload.get("loc")))
    except (TypeError, ValueError) as exc:
        raise ValueError("token claims are malformed") from exc
