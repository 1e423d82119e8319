"""
Authentication routes.

Accounts sign up with a name, email and password, then sign in to receive
a JWT whose owner_id is the account id.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from queuewizard.api.auth import create_access_token, hash_password, verify_password
from queuewizard.config import get_settings
from queuewizard.db import get_async_session
from queuewizard.db.repository import UserRepository
from queuewizard.types.api import (
    ErrorResponse,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/signup",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    responses={409: {"model": ErrorResponse}},
    description="Register a new account with a name, email and password.",
)
async def signup(
    request: SignupRequest,
    session: AsyncSession = Depends(get_async_session),
) -> UserResponse:
    """
    Create a new account.

    Raises:
        HTTPException: If the email is already registered.
    """
    repo = UserRepository(session)

    if await repo.get_user_by_email(request.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    password_hash = await asyncio.to_thread(hash_password, request.password)

    try:
        user = await repo.create_user(
            name=request.name,
            email=request.email,
            password_hash=password_hash,
        )
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    return UserResponse.model_validate(user)


@router.post(
    "/signin",
    response_model=TokenResponse,
    summary="Sign in",
    responses={401: {"model": ErrorResponse}},
    description="Exchange an email and password for a JWT access token.",
)
async def signin(
    request: SigninRequest,
    session: AsyncSession = Depends(get_async_session),
) -> TokenResponse:
    """
    Sign in and issue an access token for the account.

    Raises:
        HTTPException: If the email is unknown or the password is wrong.
    """
    repo = UserRepository(session)
    user = await repo.get_user_by_email(request.email)

    if user is None or not await asyncio.to_thread(
        verify_password, request.password, user.password_hash
    ):
        logger.info("Sign-in rejected", extra={"email": request.email})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    settings = get_settings()
    access_token = create_access_token(owner_id=str(user.id))

    return TokenResponse(
        access_token=access_token,
        expires_in=settings.api_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )
