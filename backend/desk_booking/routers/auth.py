from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_session
from ..domain.errors import InvalidCredentialsError
from ..infrastructure.repositories import SqlAlchemyUserRepository
from ..schemas import LoginRequest, LoginResponse, UserRead
from ..usecases import users as user_usecase
from ..utils.auth import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> LoginResponse:
    user_repo = SqlAlchemyUserRepository(session)
    try:
        user = await user_usecase.login(user_repo, email=payload.email, role=payload.role)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    settings = get_settings()
    token = create_access_token(
        user_id=user.id,
        role=user.role,
        location_id=user.location_id,
        secret=settings.auth_secret,
        algorithm=settings.auth_algorithm,
        expires_delta=timedelta(minutes=settings.access_token_minutes),
    )
    return LoginResponse(access_token=token, user=UserRead.from_db(user=user))
