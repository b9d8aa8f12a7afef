"""
Post endpoints:
  POST /posts/                    — create a post
  GET  /posts/{id}                — fetch a single post (uncached)
  POST /posts/{id}/comments       — comment on a post
  POST /posts/{id}/like           — like a post (once per user)
"""

from fastapi import APIRouter, Depends, status

from postfeed.auth import get_current_user
from postfeed.schemas import CommentCreate, CommentOut, LikeOut, PostCreate, PostOut, UserPublic
from postfeed.services.feed import FeedService, get_feed_service
from postfeed.services.mutations import MutationService, get_mutation_service

router = APIRouter()


@router.post("/", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    user: UserPublic = Depends(get_current_user),
    mutations: MutationService = Depends(get_mutation_service),
):
    return await mutations.add_post(user, body.content, body.img_url, body.tags)


@router.get("/{post_id}", response_model=list[PostOut])
async def get_post(
    post_id: str,
    user: UserPublic = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service),
):
    """Zero or one post; an unknown id is an empty list."""
    return await feed.get_post_by_id(post_id)


@router.post(
    "/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def comment_post(
    post_id: str,
    body: CommentCreate,
    user: UserPublic = Depends(get_current_user),
    mutations: MutationService = Depends(get_mutation_service),
):
    return await mutations.comment_post(user, post_id, body.content)


@router.post("/{post_id}/like", response_model=LikeOut, status_code=status.HTTP_201_CREATED)
async def like_post(
    post_id: str,
    user: UserPublic = Depends(get_current_user),
    mutations: MutationService = Depends(get_mutation_service),
):
    """Like a post. A second like by the same user is a 409."""
    return await mutations.like_post(user, post_id)
