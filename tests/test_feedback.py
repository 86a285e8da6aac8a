"""
tests/test_feedback.py
Tests for feedback: rating bounds, uniqueness, stats, analytics,
and the feedback badges.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from config.settings import settings
from services.gamification.awards import award_badge, check_feedback_badges
from shared.models.models import Event, Feedback, ReceivedNotification, User, UserBadge
from tests.conftest import auth_headers, make_event


async def _give_feedback(client: AsyncClient, user: User, event_id: int, rating: int = 4, **extra):
    return await client.post(
        "/feedback",
        json={"event_id": event_id, "rating": rating, **extra},
        headers=auth_headers(user),
    )


async def _badge_names(db, user: User) -> list[str]:
    result = await db.execute(select(UserBadge.name).where(UserBadge.user_id == user.id))
    return list(result.scalars())


# ── Submission ────────────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_rating_out_of_range_is_invalid_input(
    client: AsyncClient, db, event: Event, student: User, rating: int
):
    response = await _give_feedback(client, student, event.id, rating=rating)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid input"
    assert await db.scalar(select(func.count(Feedback.id))) == 0


@pytest.mark.asyncio
async def test_feedback_awards_points_and_updates_average(
    client: AsyncClient, db, event: Event, student: User, other_student: User
):
    first = await _give_feedback(client, other_student, event.id, rating=2)
    assert first.status_code == 201

    response = await _give_feedback(client, student, event.id, rating=4, comments="Great!")
    assert response.status_code == 201
    assert response.json()["points_awarded"] == settings.FEEDBACK_POINTS

    await db.refresh(student)
    assert student.points == settings.FEEDBACK_POINTS

    stats = (await client.get(f"/feedback/event/{event.id}", headers=auth_headers(student))).json()["stats"]
    assert stats == {"total_feedback": 2, "average_rating": 3.0, "positive_ratings": 1}


@pytest.mark.asyncio
async def test_duplicate_feedback_conflicts(client: AsyncClient, db, event: Event, student: User):
    assert (await _give_feedback(client, student, event.id)).status_code == 201
    assert (await _give_feedback(client, student, event.id, rating=1)).status_code == 409

    count = await db.scalar(select(func.count(Feedback.id)).where(Feedback.user_id == student.id))
    assert count == 1


@pytest.mark.asyncio
async def test_feedback_for_missing_event_returns_404(client: AsyncClient, student: User):
    assert (await _give_feedback(client, student, 777)).status_code == 404


@pytest.mark.asyncio
async def test_event_feedback_lists_authors(client: AsyncClient, event: Event, student: User):
    await _give_feedback(client, student, event.id, rating=5, comments="Loved it")

    body = (await client.get(f"/feedback/event/{event.id}", headers=auth_headers(student))).json()
    assert body["feedback"][0]["user_name"] == student.name
    assert body["feedback"][0]["comments"] == "Loved it"


# ── Badges ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_feedback_champion_granted_once_at_five(
    client: AsyncClient, db, student: User, college_admin: User
):
    events = [await make_event(db, college_admin, title=f"Event {i}") for i in range(6)]

    for e in events[:4]:
        response = await _give_feedback(client, student, e.id)
        assert response.json()["badges_earned"] == []
    assert await _badge_names(db, student) == []

    fifth = await _give_feedback(client, student, events[4].id)
    assert fifth.json()["badges_earned"] == ["Feedback Champion"]

    sixth = await _give_feedback(client, student, events[5].id)
    assert sixth.json()["badges_earned"] == []
    assert await _badge_names(db, student) == ["Feedback Champion"]

    notes = (
        await db.execute(
            select(ReceivedNotification).where(
                ReceivedNotification.user_id == student.id,
                ReceivedNotification.type == "badge_earned",
            )
        )
    ).scalars().all()
    assert len(notes) == 1
    assert notes[0].title == "🏆 New Badge Earned!"
    assert notes[0].message == 'You\'ve earned the "Feedback Champion" badge!'


@pytest.mark.asyncio
async def test_badge_awarded_when_count_skips_past_threshold(
    db, student: User, college_admin: User
):
    for i in range(11):
        e = await make_event(db, college_admin, title=f"Bulk {i}")
        db.add(Feedback(event_id=e.id, user_id=student.id, rating=4))
    await db.commit()

    awarded = await check_feedback_badges(db, student.id)
    assert awarded == ["Feedback Champion", "Feedback Legend"]
    assert sorted(await _badge_names(db, student)) == ["Feedback Champion", "Feedback Legend"]


@pytest.mark.asyncio
async def test_award_badge_is_idempotent(db, student: User):
    assert await award_badge(db, student.id, "Early Bird", "First to register") is True
    assert await award_badge(db, student.id, "Early Bird", "First to register") is False

    count = await db.scalar(
        select(func.count(UserBadge.id)).where(UserBadge.user_id == student.id, UserBadge.name == "Early Bird")
    )
    assert count == 1


# ── Analytics ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_analytics_overview(
    client: AsyncClient, db, college_admin: User, student: User, other_student: User, super_admin: User
):
    popular = await make_event(db, college_admin, title="Popular")
    quiet = await make_event(db, college_admin, title="Quiet")
    third = await make_event(db, college_admin, title="Third")
    db.add_all([
        Feedback(event_id=popular.id, user_id=student.id, rating=5),
        Feedback(event_id=popular.id, user_id=other_student.id, rating=4),
        Feedback(event_id=popular.id, user_id=super_admin.id, rating=3),
        Feedback(event_id=quiet.id, user_id=student.id, rating=1),
        Feedback(event_id=third.id, user_id=student.id, rating=2),
    ])
    await db.commit()

    response = await client.get("/feedback/analytics", headers=auth_headers(college_admin))
    assert response.status_code == 200
    data = response.json()

    assert data["overall"]["total_feedback"] == 5
    assert data["overall"]["average_rating"] == 3.0
    assert data["overall"]["positive_ratings"] == 2
    assert data["rating_distribution"] == {"1": 1, "2": 1, "3": 1, "4": 1, "5": 1}
    assert [e["title"] for e in data["top_events"]] == ["Popular"]
    assert data["top_events"][0]["avg_rating"] == 4.0
    assert len(data["recent_feedback"]) == 5


@pytest.mark.asyncio
async def test_analytics_requires_admin(client: AsyncClient, student: User):
    response = await client.get("/feedback/analytics", headers=auth_headers(student))
    assert response.status_code == 403


# ── Best-effort side effects ──────────────────────────────────

@pytest.mark.asyncio
async def test_failed_point_award_still_stores_feedback(
    client: AsyncClient, db, event: Event, student: User, failing_sql
):
    event_id, student_id = event.id, student.id
    failing_sql(lambda sql, params: sql.startswith("UPDATE users") and "points" in sql)

    response = await _give_feedback(client, student, event_id, rating=5)
    assert response.status_code == 201
    body = response.json()
    assert body["points_awarded"] == 0
    assert body["badges_earned"] == []

    stored = await db.scalar(
        select(func.count(Feedback.id)).where(Feedback.user_id == student_id, Feedback.event_id == event_id)
    )
    assert stored == 1

    await db.refresh(student)
    assert student.points == 0
