"""Pydantic schemas for reviews, forum threads, notifications and landlords."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from .listing import KejaniModel, _rating


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewRecord(KejaniModel):
    id: str
    house_id: str = ""
    user_name: str = ""
    rating: float = 0.0
    comment: str = ""
    created_at: Optional[datetime] = None
    helpful: int = 0
    status: Optional[ModerationStatus] = None

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: Any) -> float:
        return _rating(value)


class ForumReply(KejaniModel):
    id: str = ""
    content: str = ""
    author: str = ""
    timestamp: Optional[datetime] = None


class ForumPost(KejaniModel):
    id: str
    title: str = ""
    category: str = ""
    content: str = ""
    author: str = ""
    timestamp: Optional[datetime] = None
    replies: List[ForumReply] = Field(default_factory=list)
    likes: List[str] = Field(default_factory=list)  # user ids

    def liked_by(self, user_id: str) -> bool:
        return user_id in self.likes


class Notification(KejaniModel):
    id: str
    type: str = "new-listing"
    title: str = ""
    message: str = ""
    house_id: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None


class LandlordRecord(KejaniModel):
    id: str
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    verified: bool = False
    rating: float = 0.0
    properties: int = 0

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: Any) -> float:
        return _rating(value)


class AuthSession(KejaniModel):
    token: str
    user_id: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Forms validated before anything is sent
# ---------------------------------------------------------------------------


class ReviewForm(KejaniModel):
    house_id: str = Field(..., min_length=1)
    user_name: str = Field(..., min_length=1)
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class LandlordForm(KejaniModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    verified: bool = False
    rating: float = Field(0.0, ge=0, le=5)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email")
    @classmethod
    def email_shape(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and "@" not in value:
            raise ValueError("email address must contain '@'")
        return value


class ForumPostForm(KejaniModel):
    title: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)


class ForumReplyForm(KejaniModel):
    content: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)


class ReportForm(KejaniModel):
    description: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)


__all__ = [
    "ModerationStatus",
    "ReviewRecord",
    "ForumReply",
    "ForumPost",
    "Notification",
    "LandlordRecord",
    "AuthSession",
    "ReviewForm",
    "LandlordForm",
    "ForumPostForm",
    "ForumReplyForm",
    "ReportForm",
]
