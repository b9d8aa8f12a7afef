"""
Store adapter — every read and write the services make against the database.

Joined reads go through a fixed set of named joins (see ``Join``); the ORM
relationships are lazy="raise", so touching a relationship that was not
requested through one of them fails loudly instead of issuing a hidden query.

Mutations commit before returning. Callers that invalidate the feed cache do
so after this point, which keeps the stale-read window to the gap between
commit and cache delete.

Uniqueness of likes and follows is enforced twice: a cheap existence check
gives the friendly error in the common case, and the composite primary key
catches concurrent duplicates that race past the check.
"""
import enum
import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from postfeed.errors import ConflictError, NotFoundError
from postfeed.models import Comment, Follow, Like, Post, User
from postfeed.schemas import PostOut, UserProfile, UserPublic

logger = logging.getLogger(__name__)

ALREADY_LIKED = "You have already liked this post"
ALREADY_FOLLOWING = "You are already following this user"


class Join(str, enum.Enum):
    POST_AUTHOR = "post_author"          # post → author, likes, comments
    USER_FOLLOWERS = "user_followers"    # user → users following them
    USER_FOLLOWING = "user_following"    # user → users they follow
    USER_POSTS = "user_posts"            # user → authored posts


_JOIN_OPTIONS = {
    Join.POST_AUTHOR: (
        joinedload(Post.author),
        selectinload(Post.likes),
        selectinload(Post.comments),
    ),
    Join.USER_FOLLOWERS: (selectinload(User.followers),),
    Join.USER_FOLLOWING: (selectinload(User.following),),
    Join.USER_POSTS: (selectinload(User.posts),),
}


def _options(*joins: Join) -> list:
    return [opt for join in joins for opt in _JOIN_OPTIONS[join]]


class PostStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ─────────────────────── Joined reads ─────────────────────────────────

    async def joined_feed_read(self) -> list[PostOut]:
        """All posts, author joined, newest first."""
        rows = await self.session.execute(
            select(Post)
            .options(*_options(Join.POST_AUTHOR))
            .order_by(Post.created_at.desc(), Post.post_id.desc())
            .execution_options(populate_existing=True)
        )
        return [PostOut.model_validate(p) for p in rows.scalars().all()]

    async def joined_post_read(self, post_id: str) -> list[PostOut]:
        """Zero or one post; an unknown id is an empty result, not an error."""
        rows = await self.session.execute(
            select(Post)
            .where(Post.post_id == post_id)
            .options(*_options(Join.POST_AUTHOR))
            .execution_options(populate_existing=True)
        )
        return [PostOut.model_validate(p) for p in rows.scalars().all()]

    async def joined_user_profile_read(self, user_id: str) -> Optional[UserProfile]:
        rows = await self.session.execute(
            select(User)
            .where(User.user_id == user_id)
            .options(
                *_options(Join.USER_FOLLOWERS, Join.USER_FOLLOWING, Join.USER_POSTS)
            )
            .execution_options(populate_existing=True)
        )
        user = rows.scalar_one_or_none()
        if user is None:
            return None
        return UserProfile.model_validate(user)

    # ─────────────────────── Post mutations ───────────────────────────────

    async def insert_post(self, post: Post) -> None:
        self.session.add(post)
        await self.session.commit()
        logger.info("Post inserted: %s by %s", post.post_id, post.author_id)

    async def append_comment(self, post_id: str, comment: Comment) -> None:
        await self._require_post(post_id)
        comment.post_id = post_id
        self.session.add(comment)
        await self.session.commit()
        logger.info("Comment %s appended to post %s", comment.comment_id, post_id)

    async def append_like_if_absent(self, post_id: str, like: Like) -> None:
        await self._require_post(post_id)
        if await self._like_exists(post_id, like.username):
            raise ConflictError(ALREADY_LIKED, resource="like")

        like.post_id = post_id
        self.session.add(like)
        await self._commit_unique(ALREADY_LIKED, resource="like")
        logger.info("%s liked post %s", like.username, post_id)

    async def _require_post(self, post_id: str) -> None:
        if await self.session.get(Post, post_id) is None:
            raise NotFoundError("Post not found", resource="post")

    async def _like_exists(self, post_id: str, username: str) -> bool:
        rows = await self.session.execute(
            select(Like.username).where(Like.post_id == post_id, Like.username == username)
        )
        return rows.first() is not None

    # ─────────────────────── Follows ──────────────────────────────────────

    async def insert_follow_if_absent(self, follow: Follow) -> None:
        if await self._follow_exists(follow.following_id, follow.follower_id):
            raise ConflictError(ALREADY_FOLLOWING, resource="follow")

        self.session.add(follow)
        await self._commit_unique(ALREADY_FOLLOWING, resource="follow")
        logger.info("%s followed %s", follow.follower_id, follow.following_id)

    async def _follow_exists(self, following_id: str, follower_id: str) -> bool:
        rows = await self.session.execute(
            select(Follow.follower_id).where(
                Follow.following_id == following_id,
                Follow.follower_id == follower_id,
            )
        )
        return rows.first() is not None

    async def _commit_unique(self, message: str, resource: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError:
            # A concurrent request inserted the same key after our check
            await self.session.rollback()
            raise ConflictError(message, resource=resource)

    # ─────────────────────── Users ────────────────────────────────────────

    async def get_user(self, user_id: str) -> Optional[UserPublic]:
        user = await self.session.get(User, user_id)
        return UserPublic.model_validate(user) if user else None

    async def find_credentials(self, email: str) -> Optional[User]:
        """The only read that returns the password hash; used by login."""
        rows = await self.session.execute(select(User).where(User.email == email))
        return rows.scalar_one_or_none()

    async def username_or_email_taken(self, username: str, email: str) -> bool:
        rows = await self.session.execute(
            select(User.user_id).where(
                or_(User.username == username, User.email == email)
            )
        )
        return rows.first() is not None

    async def insert_user(self, user: User) -> UserPublic:
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Email or username already exists", resource="user")
        logger.info("Created user %s (id=%s)", user.username, user.user_id)
        return UserPublic.model_validate(user)

    async def list_users(self) -> list[UserPublic]:
        rows = await self.session.execute(select(User).order_by(User.username))
        return [UserPublic.model_validate(u) for u in rows.scalars().all()]

    async def search_users(self, term: str) -> list[UserPublic]:
        rows = await self.session.execute(
            select(User)
            .where(
                or_(
                    User.username.icontains(term, autoescape=True),
                    User.name.icontains(term, autoescape=True),
                )
            )
            .order_by(User.username)
        )
        return [UserPublic.model_validate(u) for u in rows.scalars().all()]
