"""
User endpoints:
  POST /users/register     — create an account
  POST /users/login        — exchange email + password for a bearer token
  GET  /users/             — list users
  GET  /users/search?q=    — search by username or name
  GET  /users/{id}         — profile with followers, following and posts
  POST /users/follow       — follow another user
"""

from fastapi import APIRouter, Depends, Query, status

from postfeed.auth import get_current_user
from postfeed.schemas import (
    FollowOut,
    FollowRequest,
    LoginRequest,
    LoginResponse,
    UserCreate,
    UserProfile,
    UserPublic,
)
from postfeed.services.accounts import AccountService, get_account_service
from postfeed.services.mutations import MutationService, get_mutation_service

router = APIRouter()


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register(
    body: UserCreate,
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.register(body)


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.login(body.email, body.password)


@router.get("/", response_model=list[UserPublic])
async def list_users(
    user: UserPublic = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.list_users()


@router.get("/search", response_model=list[UserPublic])
async def search_users(
    q: str = Query("", description="Case-insensitive match on username or name"),
    user: UserPublic = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.search_users(q)


@router.post("/follow", response_model=FollowOut, status_code=status.HTTP_201_CREATED)
async def follow_user(
    body: FollowRequest,
    user: UserPublic = Depends(get_current_user),
    mutations: MutationService = Depends(get_mutation_service),
):
    """
    Create a follower → following edge. Does not touch the feed cache:
    the feed is global and no post changes when someone follows someone.
    """
    return await mutations.follow_user(user, body.following_id)


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: str,
    user: UserPublic = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.get_profile(user_id)
