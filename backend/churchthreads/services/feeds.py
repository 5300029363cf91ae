import uuid

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.errors import Conflict, Forbidden, NotFound, ValidationFailed
from churchthreads.models.feed import FEED_MEMBER_PERMISSIONS, FEED_PRIVACY_LEVELS, Feed, UserFeed
from churchthreads.models.user import User
from churchthreads.services.auth import get_feed_membership
from churchthreads.services.notifications import send_notifications
from churchthreads.validation import ValidationError, validate_feed_fields


def _check_access_settings(privacy: str, member_permissions: list[str]) -> None:
    if privacy not in FEED_PRIVACY_LEVELS:
        raise ValidationFailed([ValidationError("privacy", f"Unknown privacy level {privacy}")])
    unknown = [p for p in member_permissions if p not in FEED_MEMBER_PERMISSIONS]
    if unknown:
        raise ValidationFailed(
            [ValidationError("member_permissions", f"Unknown member permission {unknown[0]}")]
        )


async def create_feed(
    db: AsyncSession,
    user: User,
    name: str,
    description: str | None = None,
    privacy: str = "private",
    member_permissions: list[str] | None = None,
) -> Feed:
    validation = validate_feed_fields(name, description)
    if not validation.valid:
        raise ValidationFailed(validation.errors)
    _check_access_settings(privacy, member_permissions or [])
    permissions = sorted(set(member_permissions or []))

    feed = Feed(
        org_id=user.org_id,
        name=name.strip(),
        description=(description or "").strip() or None,
        privacy=privacy,
        member_permissions=permissions,
    )
    db.add(feed)
    await db.flush()

    db.add(UserFeed(org_id=user.org_id, user_id=user.id, feed_id=feed.id, owner=True))
    await db.flush()
    await db.refresh(feed)
    return feed


async def get_feed(db: AsyncSession, org_id: uuid.UUID, feed_id: uuid.UUID) -> Feed:
    feed = await db.get(Feed, feed_id)
    if feed is None or feed.org_id != org_id:
        raise NotFound("Feed not found")
    return feed


async def get_readable_feed(db: AsyncSession, user: User, feed_id: uuid.UUID) -> Feed:
    """Open and public feeds are readable by everyone in the org, private feeds
    only by their members and org admins."""
    feed = await get_feed(db, user.org_id, feed_id)
    if feed.privacy != "private" or user.is_admin:
        return feed
    if await get_feed_membership(db, feed.id, user.id) is None:
        raise Forbidden("You do not have access to this feed")
    return feed


async def list_user_feeds_with_memberships(
    db: AsyncSession, user: User
) -> tuple[list[Feed], list[UserFeed], dict[uuid.UUID, int]]:
    """Feeds the user belongs to plus the org's open/public feeds."""
    memberships_result = await db.execute(
        select(UserFeed).where(UserFeed.user_id == user.id)
    )
    memberships = list(memberships_result.scalars().all())
    member_feed_ids = [m.feed_id for m in memberships]

    feeds_result = await db.execute(
        select(Feed)
        .where(
            and_(
                Feed.org_id == user.org_id,
                Feed.id.in_(member_feed_ids) | Feed.privacy.in_(("open", "public")),
            )
        )
        .order_by(Feed.name)
    )
    feeds = list(feeds_result.scalars().all())

    counts_result = await db.execute(
        select(UserFeed.feed_id, func.count(UserFeed.id))
        .where(UserFeed.feed_id.in_([f.id for f in feeds]))
        .group_by(UserFeed.feed_id)
    )
    member_counts = {feed_id: count for feed_id, count in counts_result.all()}
    return feeds, memberships, member_counts


async def list_feed_members(db: AsyncSession, feed: Feed) -> list[tuple[User, UserFeed]]:
    result = await db.execute(
        select(User, UserFeed)
        .join(UserFeed, UserFeed.user_id == User.id)
        .where(UserFeed.feed_id == feed.id)
        .order_by(UserFeed.owner.desc(), User.name)
    )
    return [(user, membership) for user, membership in result.all()]


async def add_feed_members(
    db: AsyncSession, org_id: uuid.UUID, user_id: uuid.UUID, feed_ids: list[uuid.UUID]
) -> list[UserFeed]:
    memberships = []
    for feed_id in feed_ids:
        if await get_feed_membership(db, feed_id, user_id) is not None:
            continue
        membership = UserFeed(org_id=org_id, user_id=user_id, feed_id=feed_id, owner=False)
        db.add(membership)
        memberships.append(membership)
    await db.flush()
    return memberships


async def join_feed(db: AsyncSession, user: User, feed: Feed) -> UserFeed:
    if feed.org_id != user.org_id:
        raise NotFound("Feed not found")
    if feed.privacy == "private":
        raise Forbidden("This feed is invite-only")
    if await get_feed_membership(db, feed.id, user.id) is not None:
        raise Conflict("You are already a member of this feed")

    (membership,) = await add_feed_members(db, user.org_id, user.id, [feed.id])
    await send_notifications(
        db, user.org_id, "new_feed_member", {"userId": user.id, "feedId": feed.id}
    )
    return membership


async def remove_member_from_feed(
    db: AsyncSession, actor: User, feed: Feed, member_id: uuid.UUID
) -> None:
    """Members may leave; owners and org admins may remove others. A feed
    always keeps at least one owner."""
    membership = await get_feed_membership(db, feed.id, member_id)
    if membership is None:
        raise NotFound("User is not a member of this feed")

    if member_id != actor.id and not actor.is_admin:
        actor_membership = await get_feed_membership(db, feed.id, actor.id)
        if actor_membership is None or not actor_membership.owner:
            raise Forbidden("Only feed owners can remove members")

    if membership.owner:
        owners = await db.execute(
            select(func.count(UserFeed.id)).where(
                and_(UserFeed.feed_id == feed.id, UserFeed.owner == True)  # noqa: E712
            )
        )
        if owners.scalar_one() <= 1:
            raise Conflict("A feed must keep at least one owner")

    await db.delete(membership)
    await db.flush()


async def update_feed(
    db: AsyncSession,
    actor: User,
    feed: Feed,
    name: str | None = None,
    description: str | None = None,
    privacy: str | None = None,
    member_permissions: list[str] | None = None,
) -> Feed:
    if not actor.is_admin:
        membership = await get_feed_membership(db, feed.id, actor.id)
        if membership is None or not membership.owner:
            raise Forbidden("Only feed owners can change feed settings")

    validation = validate_feed_fields(
        name if name is not None else feed.name,
        description if description is not None else feed.description,
    )
    if not validation.valid:
        raise ValidationFailed(validation.errors)
    _check_access_settings(privacy or feed.privacy, member_permissions or [])

    if name is not None:
        feed.name = name.strip()
    if description is not None:
        feed.description = description.strip() or None
    if privacy is not None:
        feed.privacy = privacy
    if member_permissions is not None:
        feed.member_permissions = sorted(set(member_permissions))

    await db.flush()
    await db.refresh(feed)
    return feed
