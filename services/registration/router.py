"""
services/registration/router.py
Student registrations and the admin approval workflow.

State per (user, event): none → PENDING → APPROVED | REJECTED.
Admins may overwrite the status freely, including moving back out of a
terminal state. Creation side effects (counter, points, activity) are
best-effort and run after the registration itself is committed.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from services.gamification.awards import award_points
from shared.middleware.auth import (
    ensure_event_owner,
    require_event_admin,
    require_student,
)
from shared.models.models import (
    ActivityType,
    Event,
    Registration,
    RegistrationStatus,
    User,
)
from shared.schemas.schemas import (
    MessageResponse,
    RegistrationCreateRequest,
    RegistrationCreateResponse,
    RegistrationStatusUpdate,
    RosterEntryResponse,
    UserRegistrationResponse,
)
from shared.utils.activity import record_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/registrations", tags=["Registrations"])

DUPLICATE_REGISTRATION = "Already registered for this event"


# ── Side effects ──────────────────────────────────────────────

async def _increment_registration_count(db: AsyncSession, event_id: int) -> None:
    try:
        await db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(registration_count=Event.registration_count + 1)
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to bump registration_count for event {event_id}")
        await db.rollback()


# ── Student ───────────────────────────────────────────────────

@router.post("", response_model=RegistrationCreateResponse, status_code=status.HTTP_201_CREATED)
async def register_for_event(
    body: RegistrationCreateRequest,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    event = await db.get(Event, body.event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")

    existing = await db.scalar(
        select(Registration.id).where(
            Registration.user_id == current_user.id,
            Registration.event_id == body.event_id,
        )
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_REGISTRATION)

    registration = Registration(
        event_id=body.event_id,
        user_id=current_user.id,
        status=RegistrationStatus.PENDING,
    )
    db.add(registration)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_REGISTRATION)

    # A failed side effect rolls the session back and expires current_user
    registration_id = registration.id
    user_id = current_user.id
    await _increment_registration_count(db, body.event_id)
    awarded = await award_points(
        db, user_id, settings.REGISTRATION_POINTS, reason=f"registration {registration_id}"
    )
    await record_activity(db, user_id, body.event_id, ActivityType.REGISTER)

    return RegistrationCreateResponse(
        message="Registration successful",
        registration_id=registration_id,
        status=RegistrationStatus.PENDING.value,
        points_awarded=settings.REGISTRATION_POINTS if awarded else 0,
    )


@router.get("/user/{user_id}", response_model=List[UserRegistrationResponse])
async def get_user_registrations(
    user_id: int,
    current_user: User = Depends(require_student),
    db: AsyncSession = Depends(get_db),
):
    if user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    rows = await db.execute(
        select(Registration, Event)
        .join(Event, Event.id == Registration.event_id)
        .where(Registration.user_id == user_id)
        .order_by(Registration.created_at.desc(), Registration.id.desc())
    )
    return [
        UserRegistrationResponse(
            id=reg.id,
            event_id=event.id,
            title=event.title,
            category=event.category,
            location=event.location,
            start_date=event.start_date,
            end_date=event.end_date,
            status=reg.status,
            created_at=reg.created_at,
        )
        for reg, event in rows
    ]


# ── Admin ─────────────────────────────────────────────────────

@router.put("/{registration_id}", response_model=MessageResponse)
async def update_registration_status(
    registration_id: int,
    body: RegistrationStatusUpdate,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """Blind overwrite of the status; no transition guard."""
    registration = await db.get(Registration, registration_id)
    if not registration:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")

    event = await db.get(Event, registration.event_id)
    ensure_event_owner(event, current_user)

    registration.status = RegistrationStatus(body.status)
    await db.commit()
    return MessageResponse(message=f"Registration {registration.status.value}")


@router.get("/event/{event_id}", response_model=List[RosterEntryResponse])
async def get_event_registrations(
    event_id: int,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    ensure_event_owner(event, current_user)

    rows = await db.execute(
        select(Registration, User)
        .join(User, User.id == Registration.user_id)
        .where(Registration.event_id == event_id)
        .order_by(Registration.created_at.desc(), Registration.id.desc())
    )
    return [
        RosterEntryResponse(
            id=reg.id,
            user_id=user.id,
            student_name=user.name,
            email=user.email,
            college=user.college,
            status=reg.status,
            created_at=reg.created_at,
        )
        for reg, user in rows
    ]
