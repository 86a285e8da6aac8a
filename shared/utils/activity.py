"""
shared/utils/activity.py
UserActivity log writer. The log only feeds category recommendations,
so a failed write is logged and dropped.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import ActivityType, UserActivity

logger = logging.getLogger(__name__)


async def record_activity(
    db: AsyncSession, user_id: int, event_id: int, activity_type: ActivityType
) -> None:
    try:
        db.add(UserActivity(user_id=user_id, event_id=event_id, activity_type=activity_type))
        await db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to record {activity_type.value} activity for user {user_id}")
        await db.rollback()
