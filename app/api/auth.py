"""
Authentication endpoints — registration, login, and current profile.

  1. POST /register — create account (KYC PENDING), return JWT
  2. POST /login    — email + password, return JWT (5 attempts / 15 min)
  3. POST /logout   — clear the token cookie
  4. GET  /me       — current user's profile
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.config import settings
from app.core.errors import AuthenticationError, ConflictError
from app.core.security import clear_token_cookie, set_token_cookie, token_lifetime_seconds
from app.database import get_db
from app.models.user import User
from app.redis_client import get_redis
from app.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserRead
from app.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(response: Response, user: User, token: str) -> AuthResponse:
    set_token_cookie(response, token)
    return AuthResponse(
        access_token=token,
        token_type="bearer",
        expires_in=token_lifetime_seconds(),
        user=UserRead.model_validate(user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a new account. KYC starts PENDING; transfers require APPROVED."""
    try:
        user, token = await auth_service.register(db, payload.name, payload.email, payload.password)
    except ConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return _auth_response(response, user, token)


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Authenticate with email + password."""
    within_limit = await auth_service.check_rate_limit(
        f"login:{payload.email.lower()}",
        settings.LOGIN_RATE_LIMIT,
        settings.LOGIN_RATE_WINDOW_SECONDS,
        redis,
    )
    if not within_limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many authentication attempts, please try again later",
        )

    try:
        user, token = await auth_service.login(db, payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))

    return _auth_response(response, user, token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    """Clear the auth cookie."""
    clear_token_cookie(response)


@router.get("/me", response_model=UserRead)
async def me(user: User = Depends(get_current_user)):
    return UserRead.model_validate(user)
