"""Invitations: single-use email invites and multi-use shareable links."""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.errors import ChurchThreadsError, Forbidden, InviteError, NotFound
from churchthreads.models.base import as_utc, utcnow
from churchthreads.models.feed import Feed
from churchthreads.models.invite import Invite
from churchthreads.models.organization import Organization
from churchthreads.models.user import User
from churchthreads.services.auth import is_feed_owner
from churchthreads.services.email import send_email
from churchthreads.services.email_templates import render_registration_invite
from churchthreads.services.tokens import generate_invite_token
from churchthreads.validation import validate_email_field

logger = logging.getLogger(__name__)

INVITE_TYPES = ("email", "link")


@dataclass
class InviteResult:
    email: str
    success: bool
    error: str | None = None
    invite_id: uuid.UUID | None = None


def has_invite_expired(invite: Invite) -> bool:
    if invite.expires_at and as_utc(invite.expires_at) < utcnow():
        return True
    if invite.max_uses and invite.use_count >= invite.max_uses:
        return True
    return False


def invite_ttl(invite_type: str) -> timedelta:
    if invite_type == "email":
        return timedelta(days=settings.email_invite_ttl_days)
    return timedelta(days=settings.link_invite_ttl_days)


async def _check_email_is_free(db: AsyncSession, org_id: uuid.UUID, email: str) -> None:
    existing_user = await db.execute(
        select(User.id).where(and_(User.org_id == org_id, User.email == email))
    )
    if existing_user.first() is not None:
        raise InviteError("A user with this email already exists in the organization")

    existing_invite = await db.execute(
        select(Invite.id).where(
            and_(
                Invite.org_id == org_id,
                Invite.email == email,
                Invite.expires_at > utcnow(),
            )
        )
    )
    if existing_invite.first() is not None:
        raise InviteError("An active invite for this email already exists in the organization")


async def _check_feeds(db: AsyncSession, inviter: User, feed_ids: list[uuid.UUID]) -> None:
    for feed_id in feed_ids:
        feed = await db.get(Feed, feed_id)
        if feed is None or feed.org_id != inviter.org_id:
            raise NotFound(f"Feed {feed_id} not found")
        if not inviter.is_admin and not await is_feed_owner(db, feed.id, inviter.id):
            raise Forbidden(
                f"You must be an admin or owner of feed {feed.name} to invite users to it"
            )


async def create_invitation(
    db: AsyncSession,
    inviter: User,
    invite_type: str,
    feed_ids: list[uuid.UUID],
    name: str | None = None,
    email: str | None = None,
    token: str | None = None,
) -> Invite:
    if invite_type not in INVITE_TYPES:
        raise InviteError(f"Unknown invite type {invite_type}")
    if invite_type == "email" and not email:
        raise InviteError("Email invites need an email address")

    if email:
        email = email.strip().lower()
        validation = validate_email_field(email, required=True)
        if not validation.valid:
            raise InviteError(validation.errors[0].message)
        await _check_email_is_free(db, inviter.org_id, email)

    await _check_feeds(db, inviter, feed_ids)

    invite = Invite(
        org_id=inviter.org_id,
        type=invite_type,
        name=(name or "").strip() or None,
        email=email or None,
        feeds=[str(f) for f in feed_ids],
        token=token or generate_invite_token(),
        created_by=inviter.id,
        expires_at=utcnow() + invite_ttl(invite_type),
        max_uses=1 if invite_type == "email" else None,
        use_count=0,
    )
    db.add(invite)
    await db.flush()
    logger.info(f"{invite_type} invite {invite.id} created by {inviter.id}")
    return invite


async def create_and_send_email_invitations(
    db: AsyncSession,
    inviter: User,
    feed_ids: list[uuid.UUID],
    users_to_invite: list[dict],
) -> list[InviteResult]:
    """Creates and mails one invite per recipient.

    A failing recipient is reported in its result and does not stop the rest.
    """
    org = await db.get(Organization, inviter.org_id)
    if org is None:
        raise NotFound("Organization not found")

    results = []
    for recipient in users_to_invite:
        address = recipient["email"]
        try:
            invite = await create_invitation(
                db,
                inviter,
                "email",
                feed_ids,
                name=recipient.get("name"),
                email=address.lower(),
            )
            rendered = render_registration_invite(org.host, invite.token, inviter.name, org.name)
            await send_email(db, address, rendered.subject, rendered.html, rendered.text, org_id=org.id)
        except ChurchThreadsError as e:
            logger.warning(f"Inviting {address} failed: {e.message}")
            results.append(InviteResult(email=address, success=False, error=e.message))
            continue
        results.append(InviteResult(email=address, success=True, invite_id=invite.id))
    return results


async def list_invites(db: AsyncSession, user: User) -> list[Invite]:
    """Admins see every invite of the org, everybody else their own."""
    query = select(Invite).where(Invite.org_id == user.org_id)
    if not user.is_admin:
        query = query.where(Invite.created_by == user.id)
    result = await db.execute(query.order_by(Invite.created_at.desc()))
    return list(result.scalars().all())


async def get_invite(db: AsyncSession, org_id: uuid.UUID, invite_id: uuid.UUID) -> Invite:
    invite = await db.get(Invite, invite_id)
    if invite is None or invite.org_id != org_id:
        raise NotFound("Invite not found")
    return invite


async def revoke_invite(db: AsyncSession, user: User, invite: Invite) -> None:
    if invite.created_by != user.id and not user.is_admin:
        raise Forbidden("Only the creator of an invite or an admin can revoke it")
    await db.delete(invite)
    await db.flush()
    logger.info(f"Invite {invite.id} revoked by {user.id}")
