import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.errors import ValidationFailed
from churchthreads.models.feed import FEED_MEMBER_PERMISSIONS
from churchthreads.models.user import User
from churchthreads.schemas.feed import (
    FeedCreate,
    FeedMemberOut,
    FeedOut,
    FeedPermissionOut,
    FeedUpdate,
    FeedWithMembership,
)
from churchthreads.schemas.user import UserBrief
from churchthreads.services.auth import check_feed_permission, get_org_user
from churchthreads.services.feeds import (
    create_feed,
    get_feed,
    get_readable_feed,
    join_feed,
    list_feed_members,
    list_user_feeds_with_memberships,
    remove_member_from_feed,
    update_feed,
)
from churchthreads.validation import ValidationError

router = APIRouter(prefix="/api/orgs/{org_id}/feeds", tags=["feeds"])


@router.post("/", response_model=FeedOut, status_code=status.HTTP_201_CREATED)
async def create(
    data: FeedCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await create_feed(
        db,
        current_user,
        data.name,
        description=data.description,
        privacy=data.privacy,
        member_permissions=data.member_permissions,
    )
    return FeedOut.model_validate(feed)


@router.get("/", response_model=list[FeedWithMembership])
async def list_feeds(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feeds, memberships, member_counts = await list_user_feeds_with_memberships(db, current_user)
    by_feed = {m.feed_id: m for m in memberships}
    out = []
    for feed in feeds:
        membership = by_feed.get(feed.id)
        item = FeedWithMembership.model_validate(feed)
        item.is_member = membership is not None
        item.is_owner = bool(membership and membership.owner)
        item.member_count = member_counts.get(feed.id, 0)
        out.append(item)
    return out


@router.get("/{feed_id}", response_model=FeedOut)
async def get_one(
    feed_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    return FeedOut.model_validate(await get_readable_feed(db, current_user, feed_id))


@router.patch("/{feed_id}", response_model=FeedOut)
async def update(
    feed_id: uuid.UUID,
    data: FeedUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_feed(db, current_user.org_id, feed_id)
    feed = await update_feed(
        db,
        current_user,
        feed,
        name=data.name,
        description=data.description,
        privacy=data.privacy,
        member_permissions=data.member_permissions,
    )
    return FeedOut.model_validate(feed)


@router.post("/{feed_id}/join", status_code=status.HTTP_201_CREATED)
async def join(
    feed_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_feed(db, current_user.org_id, feed_id)
    membership = await join_feed(db, current_user, feed)
    return {"feed_id": membership.feed_id, "user_id": membership.user_id, "owner": membership.owner}


@router.get("/{feed_id}/members", response_model=list[FeedMemberOut])
async def members(
    feed_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    return [
        FeedMemberOut(
            user=UserBrief.model_validate(user),
            owner=membership.owner,
            joined_at=membership.created_at,
        )
        for user, membership in await list_feed_members(db, feed)
    ]


@router.delete("/{feed_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    feed_id: uuid.UUID,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_feed(db, current_user.org_id, feed_id)
    await remove_member_from_feed(db, current_user, feed, user_id)


@router.get("/{feed_id}/permissions/{action}", response_model=FeedPermissionOut)
async def permission(
    feed_id: uuid.UUID,
    action: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    if action not in FEED_MEMBER_PERMISSIONS:
        raise ValidationFailed([ValidationError("action", f"Unknown action {action}")])
    feed = await get_feed(db, current_user.org_id, feed_id)
    allowed, reason = await check_feed_permission(db, current_user, feed, action)
    return FeedPermissionOut(action=action, allowed=allowed, reason=reason)
