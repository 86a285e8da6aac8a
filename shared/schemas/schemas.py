"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the platform.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from shared.models.models import RegistrationStatus, UserRole


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class PaginatedResponse(BaseSchema):
    items: List[Any]
    total: int
    page: int
    page_size: int
    pages: int


# ── Auth ──────────────────────────────────────────────────────

class SignupRequest(BaseSchema):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    college: Optional[str] = Field(None, max_length=255)
    role: UserRole = UserRole.STUDENT

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


# ── User ──────────────────────────────────────────────────────

class BadgeResponse(BaseSchema):
    name: str
    description: Optional[str]
    earned_at: datetime


class UserResponse(BaseSchema):
    id: int
    email: EmailStr
    name: str
    college: Optional[str]
    role: UserRole
    points: int
    created_at: datetime


class LoginResponse(TokenResponse):
    user: UserResponse


class ProfileResponse(BaseSchema):
    id: int
    name: str
    email: EmailStr
    college: Optional[str]
    role: UserRole
    profile_photo: Optional[str]
    bio: Optional[str]
    points: int
    badges: List[BadgeResponse] = []


# ── Event ─────────────────────────────────────────────────────

class EventResponse(BaseSchema):
    id: int
    college_id: int
    title: str
    description: Optional[str]
    category: str
    location: str
    start_date: datetime
    end_date: datetime
    image_url: Optional[str]
    registration_count: int
    created_at: datetime
    # Aggregated
    college_name: Optional[str] = None
    avg_rating: Optional[float] = None
    feedback_count: int = 0


class EventUpdateRequest(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class EventCreateResponse(BaseSchema):
    message: str
    event_id: int
    image_url: Optional[str]


# ── Registration ──────────────────────────────────────────────

class RegistrationCreateRequest(BaseSchema):
    event_id: int = Field(..., ge=1)


class RegistrationCreateResponse(BaseSchema):
    message: str
    registration_id: int
    status: RegistrationStatus
    points_awarded: int


class RegistrationStatusUpdate(BaseSchema):
    status: RegistrationStatus


class RosterEntryResponse(BaseSchema):
    id: int
    user_id: int
    student_name: str
    email: str
    college: Optional[str]
    status: RegistrationStatus
    created_at: datetime


class UserRegistrationResponse(BaseSchema):
    id: int
    event_id: int
    title: str
    category: str
    location: str
    start_date: datetime
    end_date: datetime
    status: RegistrationStatus
    created_at: datetime


# ── Feedback ──────────────────────────────────────────────────

class FeedbackCreateRequest(BaseSchema):
    event_id: int = Field(..., ge=1)
    rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=2000)


class FeedbackResponse(BaseSchema):
    id: int
    event_id: int
    user_id: int
    rating: int
    comments: Optional[str]
    created_at: datetime
    user_name: Optional[str] = None


class FeedbackStats(BaseSchema):
    total_feedback: int
    average_rating: float
    positive_ratings: int


class EventFeedbackResponse(BaseSchema):
    feedback: List[FeedbackResponse]
    stats: FeedbackStats


# ── Notification ──────────────────────────────────────────────

class BroadcastTarget(str, Enum):
    ALL = "all"
    SPECIFIC = "specific"
    EVENT = "event"


class BroadcastRequest(BaseSchema):
    """Accepts both camelCase (targetType) and snake_case (target_type) keys."""
    model_config = ConfigDict(
        from_attributes=True, use_enum_values=True, populate_by_name=True
    )

    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: str = Field(default="general", min_length=1, max_length=50)
    target_type: BroadcastTarget = Field(default=BroadcastTarget.ALL, alias="targetType")
    target_ids: Optional[List[int]] = Field(default=None, alias="targetIds")
    event_id: Optional[int] = Field(default=None, alias="eventId")


class NotificationResponse(BaseSchema):
    id: int
    notification_id: int
    user_id: int
    event_id: Optional[int]
    event_name: Optional[str]
    title: str
    message: str
    type: str
    is_read: bool
    read_at: Optional[datetime]
    created_at: datetime


# ── Bookmark ──────────────────────────────────────────────────

class BookmarkToggleRequest(BaseSchema):
    event_id: int = Field(..., ge=1)


# ── Comment ───────────────────────────────────────────────────

class CommentCreateRequest(BaseSchema):
    event_id: int = Field(..., ge=1)
    comment: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseSchema):
    id: int
    event_id: int
    user_id: int
    comment: str
    created_at: datetime
    user_name: Optional[str] = None


# ── Leaderboard ───────────────────────────────────────────────

class LeaderboardEntry(BaseSchema):
    rank: int
    id: int
    name: str
    college: Optional[str]
    points: int
    badges: List[BadgeResponse] = []
    events_attended: int
    feedback_given: int


class RankResponse(BaseSchema):
    rank: int
    points: int


# ── Admin ─────────────────────────────────────────────────────

class AdminRoleUpdateRequest(BaseSchema):
    role: UserRole


# ── Generic ───────────────────────────────────────────────────

class MessageResponse(BaseSchema):
    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    detail: str
    code: Optional[str] = None
