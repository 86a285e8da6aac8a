"""
services/user/router.py
Public profiles with badges, and profile editing (bio + photo upload).
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config.database import get_db
from shared.middleware.auth import get_current_user
from shared.models.models import User
from shared.schemas.schemas import ProfileResponse
from shared.utils.uploads import save_image

router = APIRouter(prefix="/profile", tags=["Users"])


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Any signed-in user may view a profile, badges included."""
    result = await db.execute(
        select(User).options(selectinload(User.badges)).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return ProfileResponse.model_validate(user)


@router.put("")
async def update_profile(
    bio: Optional[str] = Form(None, max_length=2000),
    profile_photo: Optional[UploadFile] = File(None, alias="profilePhoto"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update bio and/or profile photo. Only provided fields change.
    """
    has_photo = profile_photo is not None and bool(profile_photo.filename)
    if bio is None and not has_photo:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")

    if has_photo:
        current_user.profile_photo = await save_image(profile_photo, "profile")
    if bio is not None:
        current_user.bio = bio

    await db.commit()
    return {
        "message": "Profile updated successfully",
        "bio": current_user.bio,
        "profile_photo": current_user.profile_photo,
    }
