"""
Feed retrieval endpoint — GET /feed/

Every post, newest first, author joined in. Served from the cached snapshot
when present; see postfeed.services.feed for the cache-aside discipline.
"""

from fastapi import APIRouter, Depends

from postfeed.auth import get_current_user
from postfeed.schemas import PostOut, UserPublic
from postfeed.services.feed import FeedService, get_feed_service

router = APIRouter()


@router.get("/", response_model=list[PostOut])
async def get_feed(
    user: UserPublic = Depends(get_current_user),
    feed: FeedService = Depends(get_feed_service),
):
    return await feed.get_feed()
