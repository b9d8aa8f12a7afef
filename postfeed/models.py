"""
SQLAlchemy ORM models.

Tables:
  users    — accounts (password hash never leaves the store adapter)
  follows  — social graph edges (follower → following)
  posts    — post content, media URL and tags
  likes    — one row per (post, username); the composite PK is the
             uniqueness guarantee for likes
  comments — append-only comments on a post

Relationships are lazy="raise": they are only populated through the named
joins in postfeed.store.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.mysql import DATETIME
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postfeed.database import Base

# MySQL DATETIME drops sub-second precision unless fsp is set
TIMESTAMP_MS = DateTime(timezone=True).with_variant(DATETIME(fsp=3), "mysql")


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Server-assigned wall-clock timestamp, UTC, millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP_MS, default=utcnow, nullable=False
    )

    followers = relationship(
        "User",
        secondary="follows",
        primaryjoin="User.user_id == Follow.following_id",
        secondaryjoin="User.user_id == Follow.follower_id",
        viewonly=True,
        lazy="raise",
    )
    following = relationship(
        "User",
        secondary="follows",
        primaryjoin="User.user_id == Follow.follower_id",
        secondaryjoin="User.user_id == Follow.following_id",
        viewonly=True,
        lazy="raise",
    )
    posts = relationship(
        "Post",
        primaryjoin="User.user_id == foreign(Post.author_id)",
        order_by="Post.created_at.desc()",
        viewonly=True,
        lazy="raise",
    )


class Follow(Base):
    __tablename__ = "follows"

    following_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)

    __table_args__ = (
        # "who does user X follow?" — used by the profile join
        Index("idx_follower", "follower_id"),
    )


class Post(Base):
    __tablename__ = "posts"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Plain reference, not a FK: a post whose author is gone reads back with
    # a null author instead of failing.
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    img_url: Mapped[Optional[str]] = mapped_column(String(1000))
    tags: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)

    author = relationship(
        "User",
        primaryjoin="foreign(Post.author_id) == User.user_id",
        viewonly=True,
        lazy="raise",
    )
    # Same-millisecond ties fall back to the row key so reads are repeatable
    likes = relationship(
        "Like", order_by="[Like.created_at, Like.username]", lazy="raise"
    )
    comments = relationship(
        "Comment", order_by="[Comment.created_at, Comment.comment_id]", lazy="raise"
    )

    __table_args__ = (
        Index("idx_posts_author", "author_id"),
        Index("idx_posts_created", "created_at"),
    )


class Like(Base):
    __tablename__ = "likes"

    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    username: Mapped[str] = mapped_column(String(100), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)


class Comment(Base):
    __tablename__ = "comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_MS, nullable=False)

    __table_args__ = (
        Index("idx_comments_post", "post_id"),
    )
