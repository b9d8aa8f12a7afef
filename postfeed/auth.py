"""
Credentials and principal resolution.

Tokens are HS256 JWTs carrying the user id in ``sub``. Every protected
endpoint depends on ``get_current_user``, which turns the bearer token into
the public view of the calling user.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from postfeed.config import settings
from postfeed.database import get_db
from postfeed.errors import AuthenticationError
from postfeed.schemas import UserPublic
from postfeed.store import PostStore

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_expire_minutes)
    )
    return jwt.encode(
        {"sub": user_id, "exp": expire},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> str:
    """Return the user id in the token or raise AuthenticationError."""
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise AuthenticationError("Invalid token")
    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token")
    return user_id


async def resolve_principal(store: PostStore, token: Optional[str]) -> UserPublic:
    if not token:
        raise AuthenticationError("You must be logged in")
    user = await store.get_user(decode_access_token(token))
    if user is None:
        raise AuthenticationError("User not found")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserPublic:
    """FastAPI dependency: the authenticated principal for this request."""
    token = credentials.credentials if credentials else None
    return await resolve_principal(PostStore(db), token)
