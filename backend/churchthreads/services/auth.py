"""Bearer-token authentication and org/feed role checks.

Credentials live at the identity provider; sessions reaching this API carry a
JWT whose ``sub`` is the local user id (the provider stores it as the user's
external id).
"""
import uuid
from datetime import timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.database import get_db
from churchthreads.errors import Forbidden
from churchthreads.models.base import utcnow
from churchthreads.models.feed import Feed, UserFeed
from churchthreads.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def create_access_token(user_id: uuid.UUID, org_id: uuid.UUID | None = None) -> str:
    expire = utcnow() + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"sub": str(user_id), "exp": expire}
    if org_id is not None:
        payload["org"] = str(org_id)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


async def _user_from_token(token: str | None, db: AsyncSession) -> User | None:
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        user_id = uuid.UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        return None
    return await db.get(User, user_id)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await _user_from_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    return await _user_from_token(token, db)


def ensure_org_member(user: User, org_id: uuid.UUID) -> User:
    if user.org_id != org_id:
        raise Forbidden("You are not a member of this organization")
    return user


async def get_org_user(
    org_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
) -> User:
    """Dependency for routes under ``/api/orgs/{org_id}``."""
    return ensure_org_member(current_user, org_id)


async def get_feed_membership(
    db: AsyncSession, feed_id: uuid.UUID, user_id: uuid.UUID
) -> UserFeed | None:
    result = await db.execute(
        select(UserFeed).where(
            and_(UserFeed.feed_id == feed_id, UserFeed.user_id == user_id)
        )
    )
    return result.scalar_one_or_none()


async def is_feed_owner(db: AsyncSession, feed_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    membership = await get_feed_membership(db, feed_id, user_id)
    return bool(membership and membership.owner)


async def check_feed_permission(
    db: AsyncSession, user: User, feed: Feed, action: str
) -> tuple[bool, str | None]:
    """Whether ``user`` may ``post`` threads or ``message`` in ``feed``.

    Org admins and feed owners always may; plain members only when the feed
    grants the action to members.
    """
    if feed.org_id != user.org_id:
        return False, "Feed not found"
    if user.is_admin:
        return True, None

    membership = await get_feed_membership(db, feed.id, user.id)
    if membership is None:
        return False, "You are not a member of this feed"
    if membership.owner or action in (feed.member_permissions or []):
        return True, None

    verb = "post in" if action == "post" else "send messages in"
    return False, f"You do not have permission to {verb} {feed.name}"


async def require_feed_permission(
    db: AsyncSession, user: User, feed: Feed, action: str
) -> None:
    allowed, reason = await check_feed_permission(db, user, feed, action)
    if not allowed:
        raise Forbidden(reason or "Not allowed")
