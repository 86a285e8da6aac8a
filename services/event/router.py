"""
services/event/router.py
Event catalogue: public reads, admin writes with image upload,
category-based recommendations and CSV bulk import.
"""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import settings
from shared.middleware.auth import ensure_event_owner, get_current_user, require_event_admin
from shared.models.models import (
    Bookmark,
    Event,
    EventComment,
    Feedback,
    Notification,
    ReceivedNotification,
    Registration,
    User,
    UserActivity,
)
from shared.schemas.schemas import (
    EventCreateResponse,
    EventResponse,
    EventUpdateRequest,
    MessageResponse,
)
from shared.utils.audit import log_admin_action
from shared.utils.errors import db_error_summary
from shared.utils.uploads import read_limited, save_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])

CSV_REQUIRED_COLUMNS = ["title", "category", "location", "start_date", "end_date"]
CSV_TEMPLATE = (
    "title,description,category,location,start_date,end_date\n"
    "Sample Event,This is a sample event description,Workshop,Main Hall,"
    "2025-12-01 10:00:00,2025-12-01 17:00:00\n"
    "Tech Talk,Learn about latest technology trends,Hackathon,Auditorium,"
    "2025-12-05 09:00:00,2025-12-05 16:00:00\n"
)


# ── Helpers ───────────────────────────────────────────────────

def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _check_window(start_date: datetime, end_date: datetime) -> None:
    if _as_utc(end_date) < _as_utc(start_date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date",
        )


async def _get_event_or_404(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def _aggregated_events_query():
    """Events joined with owner name and feedback aggregates."""
    fb = (
        select(
            Feedback.event_id,
            func.avg(Feedback.rating).label("avg_rating"),
            func.count(Feedback.id).label("feedback_count"),
        )
        .group_by(Feedback.event_id)
        .subquery()
    )
    return (
        select(Event, User.name, fb.c.avg_rating, fb.c.feedback_count)
        .join(User, User.id == Event.college_id)
        .outerjoin(fb, fb.c.event_id == Event.id)
    )


def _to_response(event: Event, college_name=None, avg_rating=None, feedback_count=None) -> EventResponse:
    data = EventResponse.model_validate(event)
    data.college_name = college_name
    data.avg_rating = round(float(avg_rating), 1) if avg_rating is not None else None
    data.feedback_count = feedback_count or 0
    return data


def _parse_csv_datetime(value: str) -> datetime:
    # Offset-less values are taken as UTC; offsets are normalised to UTC
    return _as_utc(datetime.fromisoformat(value.strip())).astimezone(timezone.utc)


# ── Public reads ──────────────────────────────────────────────

@router.get("", response_model=List[EventResponse])
async def list_events(db: AsyncSession = Depends(get_db)):
    """All events, latest start date first."""
    query = _aggregated_events_query().order_by(Event.start_date.desc(), Event.id.desc())
    rows = (await db.execute(query)).all()
    return [_to_response(*row) for row in rows]


# ── Recommendations ───────────────────────────────────────────

@router.get("/recommended", response_model=List[EventResponse])
async def recommended_events(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Upcoming events in the caller's three most active categories,
    topped up with the most popular upcoming events.
    """
    limit = settings.RECOMMENDATION_LIMIT
    now = datetime.now(timezone.utc)

    activity_count = func.count(UserActivity.id).label("activity_count")
    top_categories = (
        await db.execute(
            select(Event.category, activity_count)
            .join(Event, Event.id == UserActivity.event_id)
            .where(UserActivity.user_id == current_user.id)
            .group_by(Event.category)
            .order_by(desc("activity_count"), Event.category)
            .limit(3)
        )
    ).all()
    categories = [row.category for row in top_categories]

    registered = select(Registration.event_id).where(Registration.user_id == current_user.id)
    upcoming = select(Event).where(Event.start_date > now, Event.id.not_in(registered))

    picks: List[Event] = []
    if categories:
        result = await db.execute(
            upcoming.where(Event.category.in_(categories))
            .order_by(Event.created_at.desc(), Event.id.desc())
            .limit(limit)
        )
        picks = list(result.scalars())

    if len(picks) < limit:
        popular = upcoming.order_by(Event.registration_count.desc(), Event.start_date.asc())
        if picks:
            popular = popular.where(Event.id.not_in([e.id for e in picks]))
        result = await db.execute(popular.limit(limit - len(picks)))
        picks.extend(result.scalars())

    return [_to_response(e) for e in picks]


# ── CSV import ────────────────────────────────────────────────

@router.get("/csv-template")
async def csv_template(current_user: User = Depends(require_event_admin)):
    return Response(
        content=CSV_TEMPLATE,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="event_import_template.csv"'},
    )


@router.post("/bulk-import")
async def bulk_import_events(
    csv_file: UploadFile = File(..., alias="csv"),
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Import events from CSV. Every row is validated first; if any row is
    invalid nothing is imported. Valid files are inserted row by row.
    """
    raw = await read_limited(csv_file)
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8 encoded")

    reader = csv.DictReader(io.StringIO(text))
    header = [h.strip() for h in (reader.fieldnames or [])]
    missing = [c for c in CSV_REQUIRED_COLUMNS if c not in header]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"CSV missing required columns: {', '.join(missing)}",
        )

    rows = []
    for row in reader:
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        cleaned = {k.strip(): v.strip() for k, v in row.items() if k and isinstance(v, str)}
        rows.append((reader.line_num, cleaned))
    if not rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file is empty")

    errors: List[str] = []
    parsed: List[tuple] = []
    for line_no, row in rows:
        empty = [c for c in CSV_REQUIRED_COLUMNS if not row.get(c)]
        if empty:
            errors.append(f"Row {line_no}: missing {', '.join(empty)}")
            continue
        try:
            start = _parse_csv_datetime(row["start_date"])
            end = _parse_csv_datetime(row["end_date"])
        except ValueError:
            errors.append(f"Row {line_no}: invalid date format")
            continue
        if end < start:
            errors.append(f"Row {line_no}: end_date is before start_date")
            continue
        parsed.append(
            (
                line_no,
                {
                    "title": row["title"],
                    "description": row.get("description") or None,
                    "category": row["category"],
                    "location": row["location"],
                    "start_date": start,
                    "end_date": end,
                },
            )
        )

    if errors:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Validation failed", "errors": errors, "imported": 0},
        )

    imported = 0
    insert_errors: List[str] = []
    for line_no, values in parsed:
        try:
            async with db.begin_nested():
                db.add(Event(college_id=current_user.id, **values))
            imported += 1
        except SQLAlchemyError as e:
            logger.exception(f"Bulk import row {line_no} failed")
            insert_errors.append(f"Row {line_no}: {db_error_summary(e)}")

    log_admin_action(
        db,
        current_user,
        action="events_bulk_import",
        entity_type="event",
        details={"imported": imported, "total": len(parsed)},
    )
    await db.commit()

    result = {
        "message": f"Successfully imported {imported} events",
        "imported": imported,
        "total": len(parsed),
    }
    if insert_errors:
        result["errors"] = insert_errors
    return result


# ── Single event ──────────────────────────────────────────────

@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)):
    row = (await db.execute(_aggregated_events_query().where(Event.id == event_id))).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return _to_response(*row)


@router.post("", response_model=EventCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    title: str = Form(..., min_length=1, max_length=255),
    category: str = Form(..., min_length=1, max_length=100),
    location: str = Form(..., min_length=1, max_length=255),
    start_date: datetime = Form(...),
    end_date: datetime = Form(...),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    _check_window(start_date, end_date)

    image_url = None
    if image is not None and image.filename:
        image_url = await save_image(image, "event")

    event = Event(
        college_id=current_user.id,
        title=title.strip(),
        description=description,
        category=category.strip(),
        location=location.strip(),
        start_date=start_date,
        end_date=end_date,
        image_url=image_url,
    )
    db.add(event)
    await db.commit()

    logger.info(f"Event {event.id} created by user {current_user.id}")
    return EventCreateResponse(
        message="Event created successfully",
        event_id=event.id,
        image_url=image_url,
    )


@router.put("/{event_id}", response_model=MessageResponse)
async def update_event(
    event_id: int,
    body: EventUpdateRequest,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await _get_event_or_404(db, event_id)
    ensure_event_owner(event, current_user)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")

    _check_window(
        changes.get("start_date", event.start_date),
        changes.get("end_date", event.end_date),
    )
    for field, value in changes.items():
        setattr(event, field, value)
    await db.commit()
    return MessageResponse(message="Event updated successfully")


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    current_user: User = Depends(require_event_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an event and everything hanging off it."""
    event = await _get_event_or_404(db, event_id)
    ensure_event_owner(event, current_user)

    for model in (Registration, Feedback, Bookmark, UserActivity, EventComment):
        await db.execute(delete(model).where(model.event_id == event_id))
    # Broadcast history keeps its event_name snapshot
    for model in (Notification, ReceivedNotification):
        await db.execute(update(model).where(model.event_id == event_id).values(event_id=None))
    await db.delete(event)
    await db.commit()

    logger.info(f"Event {event_id} deleted by user {current_user.id}")
    return MessageResponse(message="Event deleted successfully")
