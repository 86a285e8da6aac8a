"""
services/leaderboard/router.py
Student leaderboard. Rank = (students with strictly more points) + 1,
so equal scores share a rank.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from config.database import get_db
from config.settings import settings
from shared.middleware.auth import get_current_user
from shared.models.models import Feedback, Registration, RegistrationStatus, User, UserRole
from shared.schemas.schemas import BadgeResponse, LeaderboardEntry, RankResponse

router = APIRouter(prefix="/leaderboard", tags=["Leaderboard"])


async def rank_for_points(db: AsyncSession, points: int) -> int:
    ahead = await db.scalar(
        select(func.count(User.id)).where(
            User.role == UserRole.STUDENT,
            User.points > points,
        )
    )
    return (ahead or 0) + 1


@router.get("", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    events_attended = (
        select(func.count(Registration.id))
        .where(
            Registration.user_id == User.id,
            Registration.status == RegistrationStatus.APPROVED,
        )
        .correlate(User)
        .scalar_subquery()
    )
    feedback_given = (
        select(func.count(Feedback.id))
        .where(Feedback.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )

    rows = await db.execute(
        select(User, events_attended.label("events_attended"), feedback_given.label("feedback_given"))
        .options(selectinload(User.badges))
        .where(User.role == UserRole.STUDENT)
        .order_by(User.points.desc(), User.id.asc())
        .limit(settings.LEADERBOARD_SIZE)
    )

    entries = []
    rank = 0
    previous_points = None
    for position, (user, attended, given) in enumerate(rows, start=1):
        # Every higher scorer is listed above, so competition ranking matches rank_for_points
        if user.points != previous_points:
            rank = position
            previous_points = user.points
        entries.append(
            LeaderboardEntry(
                rank=rank,
                id=user.id,
                name=user.name,
                college=user.college,
                points=user.points,
                badges=[BadgeResponse.model_validate(b) for b in user.badges],
                events_attended=attended or 0,
                feedback_given=given or 0,
            )
        )
    return entries


@router.get("/rank", response_model=RankResponse)
async def get_my_rank(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    points = await db.scalar(select(User.points).where(User.id == current_user.id)) or 0
    return RankResponse(rank=await rank_for_points(db, points), points=points)
