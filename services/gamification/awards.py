"""
services/gamification/awards.py
Points and badges. Every award is a best-effort side effect: failures are
logged and rolled back, never raised to the request that triggered them.
"""

import logging
from typing import List

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification.broadcast import create_notification
from shared.models.models import Feedback, User, UserBadge

logger = logging.getLogger(__name__)

# (threshold, badge name, description)
FEEDBACK_BADGES = [
    (5, "Feedback Champion", "Provided feedback for 5 events"),
    (10, "Feedback Legend", "Provided feedback for 10 events"),
]

BADGE_NOTIFICATION_TITLE = "🏆 New Badge Earned!"
BADGE_NOTIFICATION_TYPE = "badge_earned"


async def award_points(db: AsyncSession, user_id: int, amount: int, reason: str = "") -> bool:
    """Additive points update. Returns False (and swallows) on failure."""
    try:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + amount)
        )
        await db.commit()
        logger.info(f"Awarded {amount} points to user {user_id} ({reason})")
        return True
    except SQLAlchemyError:
        logger.exception(f"Failed to award {amount} points to user {user_id}")
        await db.rollback()
        return False


async def award_badge(db: AsyncSession, user_id: int, name: str, description: str) -> bool:
    """
    Grant a badge once per (user, name).
    Returns True only when a new badge row was written.
    """
    try:
        existing = await db.scalar(
            select(UserBadge.id).where(UserBadge.user_id == user_id, UserBadge.name == name)
        )
        if existing:
            return False

        db.add(UserBadge(user_id=user_id, name=name, description=description))
        try:
            await db.commit()
        except IntegrityError:
            # A concurrent request granted it first
            await db.rollback()
            return False

    except SQLAlchemyError:
        logger.exception(f"Failed to award badge '{name}' to user {user_id}")
        await db.rollback()
        return False

    logger.info(f"User {user_id} earned badge '{name}'")
    try:
        await create_notification(
            db,
            user_id=user_id,
            title=BADGE_NOTIFICATION_TITLE,
            message=f'You\'ve earned the "{name}" badge!',
            type=BADGE_NOTIFICATION_TYPE,
        )
    except SQLAlchemyError:
        logger.exception(f"Badge notification for user {user_id} failed")
        await db.rollback()
    return True


async def check_feedback_badges(db: AsyncSession, user_id: int) -> List[str]:
    """
    Award every feedback badge whose threshold the user's count has reached.
    Already-held badges are skipped by award_badge, so each is granted once.
    """
    try:
        count = await db.scalar(
            select(func.count(Feedback.id)).where(Feedback.user_id == user_id)
        ) or 0
    except SQLAlchemyError:
        logger.exception(f"Failed to count feedback for user {user_id}")
        await db.rollback()
        return []

    awarded = []
    for threshold, name, description in FEEDBACK_BADGES:
        if count >= threshold and await award_badge(db, user_id, name, description):
            awarded.append(name)
    return awarded
