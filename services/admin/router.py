"""
services/admin/router.py
Super-admin oversight (users, roles, cross-college stats, admin log)
and the helper listings college admins use to target notifications.

Role changes are logged to AdminLog before returning.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from shared.middleware.auth import ensure_event_owner, require_event_admin, require_super_admin
from shared.models.models import (
    AdminLog,
    Event,
    Registration,
    RegistrationStatus,
    User,
    UserRole,
)
from shared.schemas.schemas import AdminRoleUpdateRequest, MessageResponse
from shared.utils.audit import log_admin_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


# ── Users ─────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    events_created = (
        select(func.count(Event.id)).where(Event.college_id == User.id).correlate(User).scalar_subquery()
    )
    registrations_count = (
        select(func.count(Registration.id))
        .where(Registration.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    rows = await db.execute(
        select(User, events_created.label("events_created"), registrations_count.label("registrations"))
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "college": user.college,
            "role": user.role.value,
            "points": user.points,
            "created_at": user.created_at,
            "events_created": created or 0,
            "registrations_count": registrations or 0,
        }
        for user, created, registrations in rows
    ]


@router.put("/users/{user_id}/role", response_model=MessageResponse)
async def update_user_role(
    user_id: int,
    body: AdminRoleUpdateRequest,
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    old_role = user.role.value
    user.role = UserRole(body.role)
    log_admin_action(
        db,
        current_user,
        action="update_user_role",
        entity_type="user",
        entity_id=user.id,
        details={"old_role": old_role, "new_role": user.role.value},
    )
    await db.commit()

    logger.info(f"User {user_id} role changed {old_role} → {user.role.value} by {current_user.id}")
    return MessageResponse(message="User role updated successfully")


# ── Platform stats ────────────────────────────────────────────

@router.get("/stats")
async def platform_stats(
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    users = (
        await db.execute(
            select(
                func.count(User.id).label("total"),
                _count_where(User.role == UserRole.STUDENT).label("students"),
                _count_where(User.role == UserRole.COLLEGE_ADMIN).label("admins"),
                _count_where(User.role == UserRole.SUPER_ADMIN).label("super_admins"),
            )
        )
    ).one()

    total_events = await db.scalar(select(func.count(Event.id))) or 0
    colleges_with_events = await db.scalar(select(func.count(func.distinct(Event.college_id)))) or 0
    registrations = (
        await db.execute(
            select(
                func.count(Registration.id).label("total"),
                _count_where(Registration.status == RegistrationStatus.APPROVED).label("approved"),
            )
        )
    ).one()

    event_count = func.count(Event.id).label("event_count")
    top_colleges = await db.execute(
        select(User.college, event_count)
        .join(Event, Event.college_id == User.id)
        .group_by(User.college)
        .order_by(event_count.desc())
        .limit(5)
    )

    created = await db.execute(
        select(Event.title, User.name, Event.created_at)
        .join(User, User.id == Event.college_id)
        .order_by(Event.created_at.desc())
        .limit(10)
    )
    registered = await db.execute(
        select(Event.title, User.name, Registration.created_at)
        .join(Event, Event.id == Registration.event_id)
        .join(User, User.id == Registration.user_id)
        .order_by(Registration.created_at.desc())
        .limit(10)
    )
    activity = [
        {"type": "event_created", "title": title, "user_name": name, "created_at": at}
        for title, name, at in created
    ] + [
        {"type": "registration", "title": title, "user_name": name, "created_at": at}
        for title, name, at in registered
    ]
    activity.sort(key=lambda a: a["created_at"], reverse=True)

    return {
        "users": {
            "total": users.total,
            "students": int(users.students),
            "admins": int(users.admins),
            "super_admins": int(users.super_admins),
        },
        "events": {
            "total_events": total_events,
            "colleges_with_events": colleges_with_events,
            "total_registrations": registrations.total,
            "approved_registrations": int(registrations.approved),
        },
        "top_colleges": [
            {"college": college, "event_count": count} for college, count in top_colleges
        ],
        "recent_activity": activity[:10],
    }


# ── Admin log ─────────────────────────────────────────────────

@router.get("/logs")
async def get_admin_logs(
    action: str = Query(None, description="Filter by action e.g. update_user_role"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
):
    """Append-only admin log, newest first."""
    query = (
        select(AdminLog, User)
        .join(User, User.id == AdminLog.admin_id)
        .order_by(AdminLog.created_at.desc(), AdminLog.id.desc())
    )
    if action:
        query = query.where(AdminLog.action == action)

    total = await db.scalar(select(func.count()).select_from(query.subquery())) or 0
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))

    return {
        "items": [
            {
                "id": log.id,
                "admin_id": admin.id,
                "admin_name": admin.name,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "details": log.details,
                "created_at": log.created_at,
            }
            for log, admin in result.all()
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": -(-total // page_size),
    }


# ── College admin helpers ─────────────────────────────────────

@router.get("/students")
async def list_students(
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User).where(User.role == UserRole.STUDENT).order_by(User.name, User.id)
    )
    return [
        {"id": u.id, "name": u.name, "email": u.email, "college": u.college, "points": u.points}
        for u in result.scalars()
    ]


@router.get("/events-list")
async def list_admin_events(
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """The caller's events (all events for the super admin) with registration counts."""
    registrations = func.count(Registration.id).label("registrations")
    query = (
        select(Event.id, Event.title, Event.category, Event.start_date, registrations)
        .outerjoin(Registration, Registration.event_id == Event.id)
        .group_by(Event.id, Event.title, Event.category, Event.start_date)
        .order_by(Event.start_date.desc(), Event.id.desc())
    )
    if current_user.role != UserRole.SUPER_ADMIN:
        query = query.where(Event.college_id == current_user.id)

    rows = await db.execute(query)
    return [
        {
            "id": row.id,
            "title": row.title,
            "category": row.category,
            "start_date": row.start_date,
            "registration_count": row.registrations,
        }
        for row in rows
    ]


@router.get("/event/{event_id}/students")
async def list_event_students(
    event_id: int,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    ensure_event_owner(event, current_user)

    rows = await db.execute(
        select(User, Registration.status)
        .join(Registration, Registration.user_id == User.id)
        .where(Registration.event_id == event_id, User.role == UserRole.STUDENT)
        .order_by(User.name, User.id)
    )
    return [
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "college": user.college,
            "registration_status": reg_status.value,
        }
        for user, reg_status in rows
    ]
