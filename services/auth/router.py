"""
services/auth/router.py
Email/password authentication endpoints.
Implements: Signup → Login → JWT issue → Current user
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_user
from shared.middleware.rate_limit import auth_rate_limit
from shared.models.models import User, UserRole
from shared.schemas.schemas import LoginRequest, LoginResponse, SignupRequest, UserResponse
from shared.utils.security import (
    access_token_ttl_seconds,
    create_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])

INVALID_CREDENTIALS = "Invalid email or password"


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
    summary="Create an account",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Students and college admins may self-register.
    The super admin account is provisioned out of band.
    """
    if body.role == UserRole.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot self-register as super_admin",
        )

    existing = await db.scalar(select(User.id).where(User.email == body.email))
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        name=body.name.strip(),
        email=body.email,
        password_hash=hash_password(body.password),
        college=body.college,
        role=UserRole(body.role),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    logger.info(f"New {user.role.value} account: {user.id}")
    return {"message": "User registered successfully", "user_id": user.id}


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(auth_rate_limit)],
    summary="Exchange credentials for an access token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.email == body.email.lower()))
    user = result.scalar_one_or_none()

    # Same error for unknown email and wrong password
    if not user or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_access_token(user.id, user.role.value)
    return LoginResponse(
        access_token=token,
        expires_in=access_token_ttl_seconds(),
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse, summary="Get current user")
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user
