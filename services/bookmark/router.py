"""
services/bookmark/router.py
Bookmark toggle set: at most one (user, event) pair.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_user
from shared.models.models import ActivityType, Bookmark, Event, User
from shared.schemas.schemas import BookmarkToggleRequest
from shared.utils.activity import record_activity

router = APIRouter(prefix="/bookmarks", tags=["Bookmarks"])


@router.post("/toggle")
async def toggle_bookmark(
    body: BookmarkToggleRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    existing = await db.scalar(
        select(Bookmark.id).where(
            Bookmark.user_id == current_user.id,
            Bookmark.event_id == body.event_id,
        )
    )
    if existing:
        await db.execute(delete(Bookmark).where(Bookmark.id == existing))
        await db.commit()
        return {"message": "Bookmark removed", "bookmarked": False}

    if not await db.get(Event, body.event_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    db.add(Bookmark(user_id=current_user.id, event_id=body.event_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Event already bookmarked")

    await record_activity(db, current_user.id, body.event_id, ActivityType.BOOKMARK)
    return {"message": "Event bookmarked", "bookmarked": True}


@router.get("/my")
async def my_bookmarks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Event, Bookmark.created_at)
        .join(Bookmark, Bookmark.event_id == Event.id)
        .where(Bookmark.user_id == current_user.id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    )
    return [
        {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "category": event.category,
            "location": event.location,
            "start_date": event.start_date,
            "end_date": event.end_date,
            "image_url": event.image_url,
            "registration_count": event.registration_count,
            "bookmarked_at": bookmarked_at,
        }
        for event, bookmarked_at in rows
    ]


@router.get("/check/{event_id}")
async def check_bookmark(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    existing = await db.scalar(
        select(Bookmark.id).where(
            Bookmark.user_id == current_user.id,
            Bookmark.event_id == event_id,
        )
    )
    return {"bookmarked": existing is not None}
