"""
services/feedback/router.py
Post-event ratings, per-event stats and admin analytics.
One feedback row per (user, event); each one earns points and may
unlock a feedback badge.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.gamification.awards import award_points, check_feedback_badges
from shared.middleware.auth import get_current_user, require_event_admin
from shared.models.models import Event, Feedback, User, UserRole
from shared.schemas.schemas import (
    EventFeedbackResponse,
    FeedbackCreateRequest,
    FeedbackResponse,
    FeedbackStats,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feedback", tags=["Feedback"])

DUPLICATE_FEEDBACK = "Feedback already submitted for this event"
TOP_EVENTS_MIN_FEEDBACK = 3


def _one_decimal(value) -> float:
    return round(float(value), 1) if value is not None else 0.0


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    body: FeedbackCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await db.get(Event, body.event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    existing = await db.scalar(
        select(Feedback.id).where(
            Feedback.user_id == current_user.id,
            Feedback.event_id == body.event_id,
        )
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_FEEDBACK)

    feedback = Feedback(
        event_id=body.event_id,
        user_id=current_user.id,
        rating=body.rating,
        comments=body.comments,
    )
    db.add(feedback)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_FEEDBACK)

    # A failed side effect rolls the session back and expires current_user
    feedback_id = feedback.id
    user_id = current_user.id
    awarded = await award_points(
        db, user_id, settings.FEEDBACK_POINTS, reason=f"feedback {feedback_id}"
    )
    badges = await check_feedback_badges(db, user_id)

    return {
        "message": "Feedback submitted successfully",
        "feedback_id": feedback_id,
        "points_awarded": settings.FEEDBACK_POINTS if awarded else 0,
        "badges_earned": badges,
    }


@router.get("/analytics")
async def feedback_analytics(
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Rating overview. College admins see their own events only;
    the super admin sees everything.
    """
    scope = []
    if current_user.role != UserRole.SUPER_ADMIN:
        scope.append(Event.college_id == current_user.id)

    overall = (
        await db.execute(
            select(
                func.count(Feedback.id).label("total_feedback"),
                func.avg(Feedback.rating).label("average_rating"),
                func.count(func.distinct(Feedback.event_id)).label("events_with_feedback"),
                func.coalesce(func.sum(case((Feedback.rating >= 4, 1), else_=0)), 0).label(
                    "positive_ratings"
                ),
            )
            .join(Event, Event.id == Feedback.event_id)
            .where(*scope)
        )
    ).one()

    distribution_rows = await db.execute(
        select(Feedback.rating, func.count(Feedback.id))
        .join(Event, Event.id == Feedback.event_id)
        .where(*scope)
        .group_by(Feedback.rating)
    )
    distribution = {str(r): 0 for r in range(1, 6)}
    for rating, count in distribution_rows:
        distribution[str(rating)] = count

    avg_rating = func.avg(Feedback.rating).label("avg_rating")
    feedback_count = func.count(Feedback.id).label("feedback_count")
    top_rows = await db.execute(
        select(Event.id, Event.title, avg_rating, feedback_count)
        .join(Feedback, Feedback.event_id == Event.id)
        .where(*scope)
        .group_by(Event.id, Event.title)
        .having(func.count(Feedback.id) >= TOP_EVENTS_MIN_FEEDBACK)
        .order_by(avg_rating.desc(), feedback_count.desc())
        .limit(5)
    )

    recent_rows = await db.execute(
        select(Feedback, User.name, Event.title)
        .join(User, User.id == Feedback.user_id)
        .join(Event, Event.id == Feedback.event_id)
        .where(*scope)
        .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        .limit(10)
    )

    return {
        "overall": {
            "total_feedback": overall.total_feedback,
            "average_rating": _one_decimal(overall.average_rating),
            "events_with_feedback": overall.events_with_feedback,
            "positive_ratings": int(overall.positive_ratings),
        },
        "rating_distribution": distribution,
        "top_events": [
            {
                "id": row.id,
                "title": row.title,
                "avg_rating": _one_decimal(row.avg_rating),
                "feedback_count": row.feedback_count,
            }
            for row in top_rows
        ],
        "recent_feedback": [
            {
                "id": fb.id,
                "event_id": fb.event_id,
                "event_title": title,
                "user_name": name,
                "rating": fb.rating,
                "comments": fb.comments,
                "created_at": fb.created_at,
            }
            for fb, name, title in recent_rows
        ],
    }


@router.get("/event/{event_id}", response_model=EventFeedbackResponse)
async def get_event_feedback(
    event_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = (
        await db.execute(
            select(Feedback, User.name)
            .join(User, User.id == Feedback.user_id)
            .where(Feedback.event_id == event_id)
            .order_by(Feedback.created_at.desc(), Feedback.id.desc())
        )
    ).all()

    items = []
    for fb, name in rows:
        item = FeedbackResponse.model_validate(fb)
        item.user_name = name
        items.append(item)

    total = len(items)
    average = sum(i.rating for i in items) / total if total else 0
    return EventFeedbackResponse(
        feedback=items,
        stats=FeedbackStats(
            total_feedback=total,
            average_rating=_one_decimal(average),
            positive_ratings=sum(1 for i in items if i.rating >= 4),
        ),
    )
