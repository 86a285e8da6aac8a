"""
tests/test_events.py
Tests for the event catalogue: public reads, admin writes and ownership,
image upload, recommendations, CSV template and bulk import.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from services.event.router import CSV_TEMPLATE
from shared.models.models import (
    ActivityType,
    Event,
    Feedback,
    Registration,
    RegistrationStatus,
    User,
    UserActivity,
)
from tests.conftest import auth_headers, make_event


def _event_form(**overrides) -> dict:
    start = datetime.now(timezone.utc) + timedelta(days=10)
    form = {
        "title": "Robotics Workshop",
        "description": "Build a line follower",
        "category": "Workshop",
        "location": "Lab 2",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=3)).isoformat(),
    }
    form.update(overrides)
    return form


# ── Public reads ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_list_events_is_public(client: AsyncClient, event: Event):
    response = await client.get("/events")
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["title"] == event.title
    assert data[0]["college_name"] == "Clara Admin"
    assert data[0]["feedback_count"] == 0
    assert data[0]["avg_rating"] is None


@pytest.mark.asyncio
async def test_list_events_aggregates_feedback(
    client: AsyncClient, db, event: Event, student: User, other_student: User
):
    db.add_all([
        Feedback(event_id=event.id, user_id=student.id, rating=5),
        Feedback(event_id=event.id, user_id=other_student.id, rating=4),
    ])
    await db.commit()

    data = (await client.get(f"/events/{event.id}")).json()
    assert data["feedback_count"] == 2
    assert data["avg_rating"] == 4.5


@pytest.mark.asyncio
async def test_get_missing_event_returns_404(client: AsyncClient):
    response = await client.get("/events/9999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_orders_latest_start_first(client: AsyncClient, db, college_admin: User):
    await make_event(db, college_admin, title="Soon", days_ahead=1)
    await make_event(db, college_admin, title="Later", days_ahead=30)

    titles = [e["title"] for e in (await client.get("/events")).json()]
    assert titles == ["Later", "Soon"]


# ── Admin writes ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_admin_creates_event(client: AsyncClient, db, college_admin: User):
    response = await client.post("/events", data=_event_form(), headers=auth_headers(college_admin))
    assert response.status_code == 201
    body = response.json()
    assert body["image_url"] is None

    event = await db.get(Event, body["event_id"])
    assert event.college_id == college_admin.id
    assert event.registration_count == 0


@pytest.mark.asyncio
async def test_create_event_with_image(client: AsyncClient, college_admin: User):
    response = await client.post(
        "/events",
        data=_event_form(),
        files={"image": ("poster.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 201
    image_url = response.json()["image_url"]
    assert image_url.startswith("/uploads/events/event-")
    assert image_url.endswith(".png")

    served = await client.get(image_url)
    assert served.status_code == 200


@pytest.mark.asyncio
async def test_create_event_rejects_non_image_upload(client: AsyncClient, college_admin: User):
    response = await client.post(
        "/events",
        data=_event_form(),
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_event_rejects_end_before_start(client: AsyncClient, college_admin: User):
    start = datetime.now(timezone.utc) + timedelta(days=5)
    form = _event_form(
        start_date=start.isoformat(),
        end_date=(start - timedelta(hours=1)).isoformat(),
    )
    response = await client.post("/events", data=form, headers=auth_headers(college_admin))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_event_missing_fields_is_invalid_input(client: AsyncClient, college_admin: User):
    response = await client.post(
        "/events", data={"title": "Only a title"}, headers=auth_headers(college_admin)
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid input"


@pytest.mark.asyncio
async def test_student_cannot_create_event(client: AsyncClient, student: User):
    response = await client.post("/events", data=_event_form(), headers=auth_headers(student))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_updates_event(client: AsyncClient, db, event: Event, college_admin: User):
    response = await client.put(
        f"/events/{event.id}",
        json={"title": "Hack Night 2", "location": "Auditorium"},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 200
    await db.refresh(event)
    assert event.title == "Hack Night 2"
    assert event.location == "Auditorium"


@pytest.mark.asyncio
async def test_update_rejects_end_before_existing_start(
    client: AsyncClient, event: Event, college_admin: User
):
    response = await client.put(
        f"/events/{event.id}",
        json={"end_date": "2000-01-01T00:00:00+00:00"},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_other_college_admin_cannot_modify(
    client: AsyncClient, event: Event, other_admin: User
):
    update = await client.put(
        f"/events/{event.id}", json={"title": "Hijacked"}, headers=auth_headers(other_admin)
    )
    delete = await client.delete(f"/events/{event.id}", headers=auth_headers(other_admin))
    assert update.status_code == 403
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_super_admin_can_modify_any_event(
    client: AsyncClient, event: Event, super_admin: User
):
    response = await client.put(
        f"/events/{event.id}", json={"category": "Seminar"}, headers=auth_headers(super_admin)
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_delete_event_removes_dependents(
    client: AsyncClient, db, event: Event, college_admin: User, student: User
):
    db.add(Registration(event_id=event.id, user_id=student.id, status=RegistrationStatus.PENDING))
    db.add(Feedback(event_id=event.id, user_id=student.id, rating=3))
    await db.commit()

    response = await client.delete(f"/events/{event.id}", headers=auth_headers(college_admin))
    assert response.status_code == 200

    assert await db.scalar(select(func.count(Event.id))) == 0
    assert await db.scalar(select(func.count(Registration.id))) == 0
    assert await db.scalar(select(func.count(Feedback.id))) == 0


# ── Recommendations ───────────────────────────────────────────

@pytest.mark.asyncio
async def test_recommendations_prefer_active_categories(
    client: AsyncClient, db, college_admin: User, student: User
):
    attended = await make_event(db, college_admin, title="Past Hack", category="Hackathon")
    db.add(UserActivity(user_id=student.id, event_id=attended.id, activity_type=ActivityType.REGISTER))
    db.add(Registration(event_id=attended.id, user_id=student.id, status=RegistrationStatus.APPROVED))
    await db.commit()

    hack = await make_event(db, college_admin, title="Next Hack", category="Hackathon")
    talk = await make_event(db, college_admin, title="Poetry Night", category="Cultural")

    response = await client.get("/events/recommended", headers=auth_headers(student))
    assert response.status_code == 200
    ids = [e["id"] for e in response.json()]

    assert ids[0] == hack.id
    assert talk.id in ids  # popular top-up
    assert attended.id not in ids  # already registered


@pytest.mark.asyncio
async def test_recommendations_skip_past_events_and_cap(
    client: AsyncClient, db, college_admin: User, student: User
):
    past = await make_event(db, college_admin, title="Yesterday", days_ahead=-1)
    for i in range(8):
        await make_event(db, college_admin, title=f"Upcoming {i}", days_ahead=i + 1)

    data = (await client.get("/events/recommended", headers=auth_headers(student))).json()
    assert len(data) == 6
    assert past.id not in [e["id"] for e in data]


@pytest.mark.asyncio
async def test_recommendations_require_auth(client: AsyncClient):
    assert (await client.get("/events/recommended")).status_code == 401


# ── CSV ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_csv_template_download(client: AsyncClient, college_admin: User):
    response = await client.get("/events/csv-template", headers=auth_headers(college_admin))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "event_import_template.csv" in response.headers["content-disposition"]
    assert response.text.splitlines()[0] == "title,description,category,location,start_date,end_date"


@pytest.mark.asyncio
async def test_bulk_import_template_rows(client: AsyncClient, db, college_admin: User):
    response = await client.post(
        "/events/bulk-import",
        files={"csv": ("events.csv", CSV_TEMPLATE.encode(), "text/csv")},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 2
    assert body["total"] == 2
    assert "errors" not in body

    titles = (await db.execute(select(Event.title).where(Event.college_id == college_admin.id))).scalars().all()
    assert sorted(titles) == ["Sample Event", "Tech Talk"]


@pytest.mark.asyncio
async def test_bulk_import_rejects_whole_file_on_bad_row(client: AsyncClient, db, college_admin: User):
    csv_body = (
        "title,description,category,location,start_date,end_date\n"
        "Good,desc,Workshop,Hall,2030-01-01 10:00:00,2030-01-01 12:00:00\n"
        "Bad,desc,Workshop,Hall,not-a-date,2030-01-01 12:00:00\n"
        ",desc,Workshop,Hall,2030-01-01 10:00:00,2030-01-01 12:00:00\n"
    )
    response = await client.post(
        "/events/bulk-import",
        files={"csv": ("events.csv", csv_body.encode(), "text/csv")},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["imported"] == 0
    assert len(body["errors"]) == 2
    assert body["errors"][0].startswith("Row 3")
    assert await db.scalar(select(func.count(Event.id))) == 0


@pytest.mark.asyncio
async def test_bulk_import_missing_columns(client: AsyncClient, college_admin: User):
    response = await client.post(
        "/events/bulk-import",
        files={"csv": ("events.csv", b"title,category\nA,B\n", "text/csv")},
        headers=auth_headers(college_admin),
    )
    assert response.status_code == 400
    assert "location" in response.json()["detail"]


@pytest.mark.asyncio
async def test_bulk_import_student_forbidden(client: AsyncClient, student: User):
    response = await client.post(
        "/events/bulk-import",
        files={"csv": ("events.csv", CSV_TEMPLATE.encode(), "text/csv")},
        headers=auth_headers(student),
    )
    assert response.status_code == 403


async def _bulk_import(client: AsyncClient, admin: User, csv_body: str):
    return await client.post(
        "/events/bulk-import",
        files={"csv": ("events.csv", csv_body.encode(), "text/csv")},
        headers=auth_headers(admin),
    )


@pytest.mark.asyncio
async def test_bulk_import_mixes_offset_and_plain_dates(client: AsyncClient, db, college_admin: User):
    csv_body = (
        "title,description,category,location,start_date,end_date\n"
        "Offset Start,desc,Workshop,Hall,2030-01-01T10:00:00+05:30,2030-01-01 17:00:00\n"
    )
    response = await _bulk_import(client, college_admin, csv_body)
    assert response.status_code == 200
    assert response.json()["imported"] == 1

    stored = await db.scalar(select(Event).where(Event.title == "Offset Start"))
    assert stored.start_date.replace(tzinfo=timezone.utc) == datetime(2030, 1, 1, 4, 30, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_bulk_import_compares_mixed_dates_in_utc(client: AsyncClient, college_admin: User):
    csv_body = (
        "title,description,category,location,start_date,end_date\n"
        "Backwards,desc,Workshop,Hall,2030-01-01T10:00:00+05:30,2030-01-01 04:00:00\n"
    )
    response = await _bulk_import(client, college_admin, csv_body)
    assert response.status_code == 400
    assert response.json()["errors"] == ["Row 2: end_date is before start_date"]


@pytest.mark.asyncio
async def test_bulk_import_errors_name_csv_lines(client: AsyncClient, college_admin: User):
    csv_body = (
        "title,description,category,location,start_date,end_date\n"
        "Good,desc,Workshop,Hall,2030-01-01 10:00:00,2030-01-01 12:00:00\n"
        "\n"
        ",,,,,\n"
        "Bad,desc,Workshop,Hall,soon,2030-01-01 12:00:00\n"
    )
    response = await _bulk_import(client, college_admin, csv_body)
    assert response.status_code == 400
    assert response.json()["errors"] == ["Row 5: invalid date format"]
