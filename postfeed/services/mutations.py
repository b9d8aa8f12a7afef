"""
Mutation handlers: add_post, comment_post, like_post, follow_user.

Every handler follows the same sequence:

  1. Validate input: rejected before any store/cache access
  2. Require the principal
  3. Build the record with server-assigned timestamps
  4. Persist, committed by the store adapter
  5. feed.invalidate_feed(), only if feed content changed
  6. Return the record

Follow does not change any post, so it never invalidates the feed.
"""
import logging
from typing import Optional

from fastapi import Depends
from opentelemetry import trace

from postfeed.errors import AuthenticationError, NotFoundError, ValidationError
from postfeed.models import Comment, Follow, Like, Post, utcnow
from postfeed.schemas import (
    CommentOut,
    FollowOut,
    LikeOut,
    PostOut,
    UserPublic,
)
from postfeed.services.feed import FeedService, get_feed_service
from postfeed.telemetry import POST_INGESTION_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _require_text(value: Optional[str], field: str, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message, field=field)
    return value


def _require_principal(principal: Optional[UserPublic]) -> UserPublic:
    if principal is None:
        raise AuthenticationError("You must be logged in")
    return principal


class MutationService:
    def __init__(self, feed: FeedService) -> None:
        self.feed = feed
        self.store = feed.store

    async def add_post(
        self,
        principal: Optional[UserPublic],
        content: Optional[str],
        img_url: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> PostOut:
        with tracer.start_as_current_span("add_post") as span:
            content = _require_text(content, "content", "Content must be provided")
            user = _require_principal(principal)

            now = utcnow()
            post = Post(
                author_id=user.user_id,
                content=content,
                img_url=img_url,
                tags=list(tags) if tags else [],
                created_at=now,
                updated_at=now,
            )
            await self.store.insert_post(post)
            span.set_attribute("post.id", post.post_id)

            await self.feed.invalidate_feed(reason="add_post")
            POST_INGESTION_TOTAL.inc()

            return PostOut(
                post_id=post.post_id,
                content=post.content,
                img_url=post.img_url,
                author_id=post.author_id,
                tags=post.tags,
                likes=[],
                comments=[],
                created_at=post.created_at,
                updated_at=post.updated_at,
                author=user,
            )

    async def comment_post(
        self,
        principal: Optional[UserPublic],
        post_id: Optional[str],
        content: Optional[str],
    ) -> CommentOut:
        with tracer.start_as_current_span("comment_post") as span:
            post_id = _require_text(post_id, "post_id", "Post ID must be provided")
            content = _require_text(content, "content", "Content must be provided")
            user = _require_principal(principal)
            span.set_attribute("post.id", post_id)

            now = utcnow()
            comment = Comment(
                username=user.username,
                content=content,
                created_at=now,
                updated_at=now,
            )
            await self.store.append_comment(post_id, comment)
            await self.feed.invalidate_feed(reason="comment_post")
            return CommentOut.model_validate(comment)

    async def like_post(
        self,
        principal: Optional[UserPublic],
        post_id: Optional[str],
    ) -> LikeOut:
        with tracer.start_as_current_span("like_post") as span:
            post_id = _require_text(post_id, "post_id", "Post ID must be provided")
            user = _require_principal(principal)
            span.set_attribute("post.id", post_id)

            now = utcnow()
            like = Like(username=user.username, created_at=now, updated_at=now)
            await self.store.append_like_if_absent(post_id, like)
            await self.feed.invalidate_feed(reason="like_post")
            return LikeOut.model_validate(like)

    async def follow_user(
        self,
        principal: Optional[UserPublic],
        following_id: Optional[str],
    ) -> FollowOut:
        with tracer.start_as_current_span("follow_user") as span:
            following_id = _require_text(
                following_id, "following_id", "Following ID must be provided"
            )
            user = _require_principal(principal)
            if following_id == user.user_id:
                raise ValidationError("Cannot follow yourself", field="following_id")
            span.set_attribute("follow.following_id", following_id)

            if await self.store.get_user(following_id) is None:
                raise NotFoundError("User not found", resource="user")

            now = utcnow()
            follow = Follow(
                following_id=following_id,
                follower_id=user.user_id,
                created_at=now,
                updated_at=now,
            )
            await self.store.insert_follow_if_absent(follow)
            # No invalidation: following someone does not change any post
            return FollowOut.model_validate(follow)


def get_mutation_service(
    feed: FeedService = Depends(get_feed_service),
) -> MutationService:
    return MutationService(feed)
