"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.

Public user shapes carry no password field at all, so a joined author can
never leak the hash regardless of what the store hands back.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, PlainSerializer


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _isoformat(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ISO-8601 text on the wire, e.g. 2024-05-01T12:30:00.123Z
Timestamp = Annotated[
    datetime,
    AfterValidator(_as_utc),
    PlainSerializer(_isoformat, return_type=str),
]


# ──────────────────────────── Users ───────────────────────────────────────

class UserCreate(BaseModel):
    name: Optional[str] = None
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user_id: str


class UserPublic(BaseModel):
    user_id: str
    name: Optional[str] = None
    username: str
    email: str

    class Config:
        from_attributes = True


class UserPost(BaseModel):
    """A post as listed on a profile (no likes/comments)."""
    post_id: str
    content: str
    img_url: Optional[str] = None
    author_id: str
    tags: list[str] = []
    created_at: Timestamp
    updated_at: Timestamp

    class Config:
        from_attributes = True


class UserProfile(UserPublic):
    followers: list[UserPublic] = []
    following: list[UserPublic] = []
    posts: list[UserPost] = []


class FollowRequest(BaseModel):
    following_id: str = ""


class FollowOut(BaseModel):
    following_id: str
    follower_id: str
    created_at: Timestamp
    updated_at: Timestamp

    class Config:
        from_attributes = True


# ──────────────────────────── Posts ───────────────────────────────────────

class PostCreate(BaseModel):
    content: str = ""
    img_url: Optional[str] = None
    tags: Optional[list[str]] = None


class CommentCreate(BaseModel):
    content: str = ""


class LikeOut(BaseModel):
    post_id: str
    username: str
    created_at: Timestamp
    updated_at: Timestamp

    class Config:
        from_attributes = True


class CommentOut(BaseModel):
    comment_id: str
    post_id: str
    username: str
    content: str
    created_at: Timestamp
    updated_at: Timestamp

    class Config:
        from_attributes = True


class PostOut(BaseModel):
    """A post with its author joined in; the unit of the cached feed."""
    post_id: str
    content: str
    img_url: Optional[str] = None
    author_id: str
    tags: list[str] = []
    likes: list[LikeOut] = []
    comments: list[CommentOut] = []
    created_at: Timestamp
    updated_at: Timestamp
    author: Optional[UserPublic] = None

    class Config:
        from_attributes = True
