"""
services/comment/router.py
Discussion comments on events.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import get_current_user, require_student
from shared.models.models import Event, EventComment, User
from shared.schemas.schemas import CommentCreateRequest, CommentResponse

router = APIRouter(prefix="/event-comments", tags=["Comments"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_comment(
    body: CommentCreateRequest,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    if not await db.get(Event, body.event_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    comment = EventComment(
        event_id=body.event_id,
        user_id=current_user.id,
        comment=body.comment.strip(),
    )
    db.add(comment)
    await db.commit()
    return {"message": "Comment added successfully", "comment_id": comment.id}


@router.get("/{event_id}", response_model=List[CommentResponse])
async def list_comments(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(EventComment, User.name)
        .join(User, User.id == EventComment.user_id)
        .where(EventComment.event_id == event_id)
        .order_by(EventComment.created_at.desc(), EventComment.id.desc())
    )
    comments = []
    for comment, name in rows:
        item = CommentResponse.model_validate(comment)
        item.user_name = name
        comments.append(item)
    return comments
