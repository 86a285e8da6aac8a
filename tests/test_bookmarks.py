"""
tests/test_bookmarks.py
Tests for the bookmark toggle and the event discussion comments.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from shared.models.models import ActivityType, Bookmark, Event, User, UserActivity
from tests.conftest import auth_headers


async def _toggle(client: AsyncClient, user: User, event_id: int):
    return await client.post("/bookmarks/toggle", json={"event_id": event_id}, headers=auth_headers(user))


# ── Bookmarks ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_toggle_on_then_off(client: AsyncClient, db, event: Event, student: User):
    on = await _toggle(client, student, event.id)
    assert on.status_code == 200
    assert on.json()["bookmarked"] is True

    check = await client.get(f"/bookmarks/check/{event.id}", headers=auth_headers(student))
    assert check.json() == {"bookmarked": True}

    off = await _toggle(client, student, event.id)
    assert off.json()["bookmarked"] is False
    assert await db.scalar(select(func.count(Bookmark.id))) == 0

    check = await client.get(f"/bookmarks/check/{event.id}", headers=auth_headers(student))
    assert check.json() == {"bookmarked": False}


@pytest.mark.asyncio
async def test_bookmark_records_activity(client: AsyncClient, db, event: Event, student: User):
    await _toggle(client, student, event.id)

    activity = await db.scalar(
        select(UserActivity).where(UserActivity.user_id == student.id, UserActivity.event_id == event.id)
    )
    assert activity.activity_type == ActivityType.BOOKMARK


@pytest.mark.asyncio
async def test_bookmark_missing_event_returns_404(client: AsyncClient, student: User):
    assert (await _toggle(client, student, 31337)).status_code == 404


@pytest.mark.asyncio
async def test_bookmarks_are_per_user(
    client: AsyncClient, event: Event, student: User, other_student: User
):
    await _toggle(client, student, event.id)

    mine = await client.get("/bookmarks/my", headers=auth_headers(student))
    assert [e["id"] for e in mine.json()] == [event.id]
    assert mine.json()[0]["title"] == event.title

    theirs = await client.get("/bookmarks/my", headers=auth_headers(other_student))
    assert theirs.json() == []


@pytest.mark.asyncio
async def test_bookmarks_require_auth(client: AsyncClient, event: Event):
    response = await client.post("/bookmarks/toggle", json={"event_id": event.id})
    assert response.status_code == 401


# ── Comments ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_comment_round_trip(client: AsyncClient, event: Event, student: User, other_student: User):
    created = await client.post(
        "/event-comments",
        json={"event_id": event.id, "comment": "  Is there pizza?  "},
        headers=auth_headers(student),
    )
    assert created.status_code == 201
    assert created.json()["comment_id"] > 0

    listing = await client.get(f"/event-comments/{event.id}", headers=auth_headers(other_student))
    assert listing.status_code == 200
    comment = listing.json()[0]
    assert comment["comment"] == "Is there pizza?"
    assert comment["user_name"] == student.name


@pytest.mark.asyncio
async def test_comment_on_missing_event_returns_404(client: AsyncClient, student: User):
    response = await client.post(
        "/event-comments", json={"event_id": 9001, "comment": "Hello?"}, headers=auth_headers(student)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admins_cannot_comment(client: AsyncClient, event: Event, college_admin: User):
    response = await client.post(
        "/event-comments", json={"event_id": event.id, "comment": "Hi"}, headers=auth_headers(college_admin)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_empty_comment_is_invalid_input(client: AsyncClient, event: Event, student: User):
    response = await client.post(
        "/event-comments", json={"event_id": event.id, "comment": ""}, headers=auth_headers(student)
    )
    assert response.status_code == 400
