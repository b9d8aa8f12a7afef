"""Registration, login and user lookups."""
import logging
import re

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from postfeed.auth import create_access_token, hash_password, verify_password
from postfeed.config import settings
from postfeed.database import get_db
from postfeed.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from postfeed.models import User
from postfeed.schemas import LoginResponse, UserCreate, UserProfile, UserPublic
from postfeed.store import PostStore

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AccountService:
    def __init__(self, store: PostStore) -> None:
        self.store = store

    async def register(self, body: UserCreate) -> UserPublic:
        if not body.username.strip():
            raise ValidationError("Username must be provided", field="username")
        if not EMAIL_RE.match(body.email):
            raise ValidationError("Invalid email format", field="email")
        if len(body.password) < settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {settings.password_min_length} characters long",
                field="password",
            )

        if await self.store.username_or_email_taken(body.username, body.email):
            raise ConflictError("Email or username already exists", resource="user")

        user = User(
            name=body.name,
            username=body.username,
            email=body.email,
            password_hash=hash_password(body.password),
        )
        return await self.store.insert_user(user)

    async def login(self, email: str, password: str) -> LoginResponse:
        user = await self.store.find_credentials(email)
        if user is None:
            raise AuthenticationError("User not found")
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid login")
        logger.info("User %s logged in", user.user_id)
        return LoginResponse(token=create_access_token(user.user_id), user_id=user.user_id)

    async def list_users(self) -> list[UserPublic]:
        return await self.store.list_users()

    async def search_users(self, term: str) -> list[UserPublic]:
        # Blank search is an empty result, not a full listing
        if not term or not term.strip():
            return []
        return await self.store.search_users(term.strip())

    async def get_profile(self, user_id: str) -> UserProfile:
        profile = await self.store.joined_user_profile_read(user_id)
        if profile is None:
            raise NotFoundError("User not found", resource="user")
        return profile


def get_account_service(db: AsyncSession = Depends(get_db)) -> AccountService:
    return AccountService(PostStore(db))
