from functools import lru_cache
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.repositories import TextGenerator
from .domain.services import BookingPolicy
from .infrastructure.text_generation import GeminiTextGenerator
from .models import User
from .utils.auth import Principal, decode_access_token


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> Principal:
    if authorization is None:
        raise _unauthorized("Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Bearer token required")

    settings = get_settings()
    try:
        principal = decode_access_token(
            token.strip(),
            secret=settings.auth_secret,
            algorithms=[settings.auth_algorithm],
        )
    except ValueError as exc:
        raise _unauthorized("invalid or expired token") from exc

    try:
        exists = await session.scalar(select(User.id).where(User.id == principal.user_id))
    except ProgrammingError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user store unavailable") from exc
    finally:
        # Routers open their own transaction with session.begin().
        await session.rollback()
    if exists is None:
        raise _unauthorized("user not found")
    return principal


async def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return principal


def get_policy() -> BookingPolicy:
    settings = get_settings()
    return BookingPolicy(
        enforce_capacity=settings.enforce_capacity,
        waitlist_cap=settings.waitlist_cap,
        weekly_minimum_days=settings.weekly_minimum_days,
    )


@lru_cache
def _gemini_generator(api_key: str, model_name: str) -> GeminiTextGenerator:
    return GeminiTextGenerator(api_key=api_key, model_name=model_name)


def get_text_generator() -> TextGenerator | None:
    settings = get_settings()
    if not settings.genai_api_key:
        return None
    return _gemini_generator(settings.genai_api_key, settings.genai_model)
