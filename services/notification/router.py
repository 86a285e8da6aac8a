"""
services/notification/router.py
In-app notifications: admin broadcast, per-user inbox and read state,
plus the admin views of sent broadcasts.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.notification.broadcast import broadcast_notification
from shared.middleware.auth import (
    ensure_self_or_super_admin,
    get_current_user,
    require_event_admin,
)
from shared.models.models import Notification, ReceivedNotification, User, UserRole
from shared.schemas.schemas import BroadcastRequest, MessageResponse, NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])
admin_router = APIRouter(prefix="/admin/notifications", tags=["Admin"])


async def _get_owned_delivery(
    db: AsyncSession, notification_id: int, user: User
) -> ReceivedNotification:
    delivery = await db.get(ReceivedNotification, notification_id)
    if not delivery:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    ensure_self_or_super_admin(delivery.user_id, user)
    return delivery


# ── Broadcast ─────────────────────────────────────────────────

@router.post("/broadcast")
async def broadcast(
    body: BroadcastRequest,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Fan a notification out to `all` students, a `specific` id list,
    or every student registered on an `event`.
    """
    return await broadcast_notification(
        db,
        admin=current_user,
        title=body.title,
        message=body.message,
        type=body.type,
        target_type=body.target_type,
        target_ids=body.target_ids,
        event_id=body.event_id,
    )


# ── Inbox ─────────────────────────────────────────────────────

@router.get("/{user_id}", response_model=list[NotificationResponse])
async def get_user_notifications(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Latest notifications for a user, newest first."""
    ensure_self_or_super_admin(user_id, current_user)
    result = await db.execute(
        select(ReceivedNotification)
        .where(ReceivedNotification.user_id == user_id)
        .order_by(ReceivedNotification.created_at.desc(), ReceivedNotification.id.desc())
        .limit(settings.NOTIFICATION_LIST_LIMIT)
    )
    return [NotificationResponse.model_validate(n) for n in result.scalars()]


@router.get("/{user_id}/unread-count")
async def unread_count(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_self_or_super_admin(user_id, current_user)
    count = await db.scalar(
        select(func.count(ReceivedNotification.id)).where(
            ReceivedNotification.user_id == user_id,
            ReceivedNotification.is_read == False,  # noqa: E712
        )
    )
    return {"count": count or 0}


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    delivery = await _get_owned_delivery(db, notification_id, current_user)
    if not delivery.is_read:
        delivery.is_read = True
        delivery.read_at = datetime.now(timezone.utc)
        await db.commit()
    return MessageResponse(message="Notification marked as read")


@router.put("/{user_id}/read-all")
async def mark_all_read(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_self_or_super_admin(user_id, current_user)
    result = await db.execute(
        update(ReceivedNotification)
        .where(
            ReceivedNotification.user_id == user_id,
            ReceivedNotification.is_read == False,  # noqa: E712
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    await db.commit()
    return {"message": "All notifications marked as read", "updated": result.rowcount}


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_owned_delivery(db, notification_id, current_user)
    await db.execute(delete(ReceivedNotification).where(ReceivedNotification.id == notification_id))
    await db.commit()
    return MessageResponse(message="Notification deleted")


# ── Admin: sent broadcasts ────────────────────────────────────

@admin_router.get("/sent")
async def get_sent_notifications(
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """Broadcasts authored by the caller with delivery and read counts."""
    query = (
        select(
            Notification,
            func.count(ReceivedNotification.id).label("recipients_count"),
            func.coalesce(
                func.sum(case((ReceivedNotification.is_read == True, 1), else_=0)), 0  # noqa: E712
            ).label("read_count"),
        )
        .outerjoin(ReceivedNotification, ReceivedNotification.notification_id == Notification.id)
        .where(Notification.created_by == current_user.id)
        .group_by(Notification.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    rows = (await db.execute(query)).all()
    return [
        {
            "id": n.id,
            "title": n.title,
            "message": n.message,
            "type": n.type,
            "event_id": n.event_id,
            "event_name": n.event_name,
            "created_at": n.created_at,
            "recipients_count": recipients_count,
            "read_count": int(read_count),
        }
        for n, recipients_count, read_count in rows
    ]


@admin_router.get("/{notification_id}/details")
async def get_notification_details(
    notification_id: int,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    notification = await db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if current_user.role != UserRole.SUPER_ADMIN and notification.created_by != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    result = await db.execute(
        select(ReceivedNotification)
        .where(ReceivedNotification.notification_id == notification_id)
        .order_by(ReceivedNotification.user_name)
    )
    recipients = result.scalars().all()
    read = sum(1 for r in recipients if r.is_read)

    return {
        "notification": {
            "id": notification.id,
            "title": notification.title,
            "message": notification.message,
            "type": notification.type,
            "event_id": notification.event_id,
            "event_name": notification.event_name,
            "created_at": notification.created_at,
        },
        "recipients": [
            {
                "user_id": r.user_id,
                "user_name": r.user_name,
                "is_read": r.is_read,
                "read_at": r.read_at,
            }
            for r in recipients
        ],
        "stats": {
            "total": len(recipients),
            "read": read,
            "unread": len(recipients) - read,
        },
    }
