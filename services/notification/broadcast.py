"""
services/notification/broadcast.py
Notification fan-out: one Notification row expanded into one
ReceivedNotification row per resolved recipient.

Delivery is best-effort. Each recipient insert runs inside its own
SAVEPOINT, so one failed row is rolled back and reported without
aborting the rest of the broadcast.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import (
    Event,
    Notification,
    ReceivedNotification,
    Registration,
    User,
    UserRole,
)
from shared.schemas.schemas import BroadcastTarget
from shared.utils.audit import log_admin_action
from shared.utils.errors import db_error_summary

logger = logging.getLogger(__name__)

Recipient = Tuple[int, str]


# ── Recipient resolution ──────────────────────────────────────

async def resolve_recipients(
    db: AsyncSession,
    target_type: str,
    target_ids: Optional[Iterable[int]] = None,
    event_id: Optional[int] = None,
) -> List[Recipient]:
    """
    Resolve a broadcast target into distinct (id, name) students.
    `specific` ids that are unknown or not students are dropped silently.
    """
    query = select(User.id, User.name).where(User.role == UserRole.STUDENT)

    if target_type == BroadcastTarget.SPECIFIC:
        ids = set(target_ids or [])
        if not ids:
            return []
        query = query.where(User.id.in_(ids))
    elif target_type == BroadcastTarget.EVENT:
        registered = select(Registration.user_id).where(Registration.event_id == event_id)
        query = query.where(User.id.in_(registered))

    rows = await db.execute(query.distinct().order_by(User.id))
    return [(row.id, row.name) for row in rows]


def validate_target(target_type: str, target_ids: Optional[list], event_id: Optional[int]) -> None:
    if target_type == BroadcastTarget.SPECIFIC and not target_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Target IDs are required for specific targeting",
        )
    if target_type == BroadcastTarget.EVENT and not event_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event ID is required for event targeting",
        )


# ── Fan-out ───────────────────────────────────────────────────

async def broadcast_notification(
    db: AsyncSession,
    admin: User,
    title: str,
    message: str,
    type: str,
    target_type: str,
    target_ids: Optional[List[int]] = None,
    event_id: Optional[int] = None,
) -> dict:
    """
    Send one broadcast to every resolved student.

    Returns per-recipient success/failure counts; `errors` is only
    present when at least one delivery failed.
    """
    validate_target(target_type, target_ids, event_id)

    event: Optional[Event] = None
    if event_id:
        event = await db.get(Event, event_id)
        if not event:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    recipients = await resolve_recipients(db, target_type, target_ids, event_id)
    if not recipients:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No students found for the specified target",
        )

    event_name = event.title if event else None
    notification = Notification(
        event_id=event_id,
        event_name=event_name,
        title=title,
        message=message,
        type=type,
        created_by=admin.id,
    )
    db.add(notification)
    await db.flush()

    success = 0
    errors: List[str] = []
    for user_id, user_name in recipients:
        try:
            async with db.begin_nested():
                db.add(
                    ReceivedNotification(
                        notification_id=notification.id,
                        user_id=user_id,
                        user_name=user_name,
                        event_id=event_id,
                        event_name=event_name,
                        title=title,
                        message=message,
                        type=type,
                        created_by=admin.id,
                    )
                )
            success += 1
        except SQLAlchemyError as e:
            logger.exception(f"Notification {notification.id} delivery to user {user_id} failed")
            errors.append(f"Failed for user {user_id} ({user_name}): {db_error_summary(e)}")

    await db.commit()

    summary = f'Sent notification "{title}"'
    if event_name:
        summary += f' about event "{event_name}"'
    summary += f" to {success} students (type: {target_type})"
    log_admin_action(
        db,
        admin,
        action="notification_broadcast",
        entity_type="notification",
        entity_id=notification.id,
        details={
            "summary": summary,
            "success": success,
            "failed": len(errors),
            "target_type": target_type,
        },
    )
    await db.commit()

    logger.info(f"Broadcast {notification.id}: {success}/{len(recipients)} delivered")

    result_message = f"Notification sent to {success} students"
    if errors:
        result_message += f", {len(errors)} failed"

    result = {
        "message": result_message,
        "success": success,
        "failed": len(errors),
        "total": len(recipients),
        "target_type": target_type,
        "notification_id": notification.id,
        "event_id": event_id,
        "event_name": event_name,
        "target_student_ids": [user_id for user_id, _ in recipients],
    }
    if errors:
        result["errors"] = errors
    return result


# ── Single recipient ──────────────────────────────────────────

async def create_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: str = "general",
    event_id: Optional[int] = None,
    created_by: Optional[int] = None,
) -> ReceivedNotification:
    """Deliver a notification to one user. `created_by=None` marks it as system-sent."""
    user_name = await db.scalar(select(User.name).where(User.id == user_id))
    event_name = None
    if event_id:
        event_name = await db.scalar(select(Event.title).where(Event.id == event_id))

    notification = Notification(
        event_id=event_id,
        event_name=event_name,
        title=title,
        message=message,
        type=type,
        created_by=created_by,
    )
    db.add(notification)
    await db.flush()

    delivery = ReceivedNotification(
        notification_id=notification.id,
        user_id=user_id,
        user_name=user_name,
        event_id=event_id,
        event_name=event_name,
        title=title,
        message=message,
        type=type,
        created_by=created_by,
    )
    db.add(delivery)
    await db.commit()
    return delivery
