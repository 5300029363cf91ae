import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.models.user import User
from churchthreads.schemas.notification import NotificationList, NotificationOut
from churchthreads.services.auth import get_org_user
from churchthreads.services.notifications import (
    get_unread_count,
    list_notifications,
    mark_all_as_read,
    mark_notification_as_read,
)

router = APIRouter(prefix="/api/orgs/{org_id}/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationList)
async def list_all(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    notifications = await list_notifications(db, current_user.id, limit, offset, unread_only)
    unread = await get_unread_count(db, current_user.id)
    return NotificationList(
        notifications=[NotificationOut.model_validate(n) for n in notifications],
        unread_count=unread,
    )


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    return {"unread_count": await get_unread_count(db, current_user.id)}


@router.post("/read-all")
async def read_all(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    return {"marked_read": await mark_all_as_read(db, current_user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def read_one(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    notification = await mark_notification_as_read(db, current_user, notification_id)
    return NotificationOut.model_validate(notification)
