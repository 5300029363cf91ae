"""Invite-based registration across the local database and the identity provider."""
import logging
import uuid

from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.errors import Conflict, InviteError, ValidationFailed
from churchthreads.models.base import utcnow
from churchthreads.models.feed import Feed
from churchthreads.models.invite import Invite
from churchthreads.models.user import User
from churchthreads.services.feeds import add_feed_members
from churchthreads.services.identity import IdentityClient
from churchthreads.services.invites import has_invite_expired
from churchthreads.services.notifications import send_notifications
from churchthreads.validation import validate_registration_fields

logger = logging.getLogger(__name__)

INVITE_INVALID_ERROR = "Invalid invite link"
INVITE_EXPIRED_ERROR = "This invite has expired. Please reach out to your church."
INVITE_EMAIL_MISMATCH_ERROR = "This invite is for a different email address"


async def _find_invite(db: AsyncSession, org_id: uuid.UUID, token: str) -> Invite | None:
    result = await db.execute(
        select(Invite).where(and_(Invite.token == token, Invite.org_id == org_id))
    )
    return result.scalar_one_or_none()


async def lookup_invite_by_token(db: AsyncSession, org_id: uuid.UUID, token: str) -> dict:
    """Pre-fill data for the registration form, or ``{"error": ...}``."""
    invite = await _find_invite(db, org_id, token)
    if invite is None:
        return {"error": INVITE_INVALID_ERROR}
    if has_invite_expired(invite):
        return {"error": INVITE_EXPIRED_ERROR}
    return {"email": invite.email, "name": invite.name}


async def validate_invite(db: AsyncSession, org_id: uuid.UUID, token: str, email: str) -> Invite:
    invite = await _find_invite(db, org_id, token)
    if invite is None:
        raise InviteError(INVITE_INVALID_ERROR)
    if has_invite_expired(invite):
        raise InviteError(INVITE_EXPIRED_ERROR)
    if invite.email and invite.email != email:
        raise InviteError(INVITE_EMAIL_MISMATCH_ERROR)
    return invite


async def _create_local_user(db: AsyncSession, org_id: uuid.UUID, name: str, email: str) -> User:
    existing = await db.execute(
        select(User.id).where(and_(User.org_id == org_id, User.email == email))
    )
    if existing.first() is not None:
        raise Conflict("An account with this email already exists")

    user = User(org_id=org_id, email=email, name=name, role="user")
    db.add(user)
    await db.flush()
    return user


async def _delete_local_user(db: AsyncSession, user_id: uuid.UUID) -> None:
    try:
        await db.rollback()
        user = await db.get(User, user_id)
        if user is not None:
            await db.delete(user)
        await db.commit()
        logger.warning(f"Rolled back local user {user_id} after identity provider failure")
    except SQLAlchemyError as e:
        logger.error(f"Failed to roll back local user {user_id}: {e}")


async def register(
    db: AsyncSession,
    identity: IdentityClient,
    org_id: uuid.UUID,
    token: str,
    name: str,
    email: str,
) -> User:
    """Creates the account an invite grants.

    The local user is committed first so its id can be handed to the identity
    provider as the external id. If the provider rejects the user, the local
    row is deleted again and the provider's error is re-raised.
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()

    validation = validate_registration_fields(name, email)
    if not validation.valid:
        raise ValidationFailed(validation.errors)

    invite = await validate_invite(db, org_id, token, email)
    invite_id = invite.id

    user = await _create_local_user(db, org_id, name, email)
    user_id = user.id
    await db.commit()

    try:
        identity_user = await identity.create_user(email, name, external_id=str(user_id))
    except Exception:
        await _delete_local_user(db, user_id)
        raise

    user = await db.get(User, user_id)
    invite = await db.get(Invite, invite_id)
    user.identity_id = identity_user.id

    existing_feeds = await db.execute(
        select(Feed.id).where(and_(Feed.org_id == org_id, Feed.id.in_(invite.feed_ids)))
    )
    await add_feed_members(db, org_id, user_id, list(existing_feeds.scalars().all()))

    invite.use_count += 1
    invite.last_used = utcnow()

    await send_notifications(
        db, org_id, "user_registration", {"userId": user_id, "inviteId": invite_id}
    )
    await db.flush()
    logger.info(f"Registered {email} as user {user_id} via invite {invite_id}")
    return user
