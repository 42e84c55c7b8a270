"""
Authentication endpoints.

- Email/Password registration & login
- Stateless JWT bearer tokens (no server-side session store)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import create_jwt, get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services.users import authenticate, register_user
from tracker_shared.schemas.users import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

router = APIRouter()


def _token_response(user: User) -> TokenResponse:
    token, expires_in = create_jwt(user.id, user.system_role)
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a new USER account and return a bearer token for it."""
    user = await register_user(session, body)
    await session.commit()
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
):
    user = await authenticate(session, body.email, body.password)
    await session.commit()
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user
