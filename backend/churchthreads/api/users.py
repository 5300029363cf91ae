import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.errors import NotFound, ValidationFailed
from churchthreads.models.user import User
from churchthreads.schemas.user import UserOut, UserUpdate
from churchthreads.services.auth import get_org_user
from churchthreads.services.file_store import upload_url
from churchthreads.validation import ValidationError, validate_text_field

router = APIRouter(prefix="/api/orgs/{org_id}/users", tags=["users"])

NOTIFICATION_CHANNELS = ("push", "email")


def user_out(user: User) -> UserOut:
    out = UserOut.model_validate(user)
    if user.image_upload_id:
        out.image_url = upload_url(user.image_upload_id)
    return out


@router.get("/", response_model=list[UserOut])
async def list_users(
    org_id: uuid.UUID,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    query = select(User).where(User.org_id == org_id)
    if search:
        query = query.where(User.name.ilike(f"%{search}%") | User.email.ilike(f"%{search}%"))
    result = await db.execute(query.order_by(User.name).limit(50))
    return [user_out(u) for u in result.scalars().all()]


@router.get("/me", response_model=UserOut)
async def get_me(current_user: User = Depends(get_org_user)):
    return user_out(current_user)


@router.patch("/me", response_model=UserOut)
async def update_me(
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    if data.name is not None:
        validation = validate_text_field(data.name, required=True, max_length=100, field_name="Name")
        if not validation.valid:
            raise ValidationFailed(validation.errors)
        current_user.name = data.name.strip()

    if data.notification_preferences is not None:
        unknown = [c for c in data.notification_preferences if c not in NOTIFICATION_CHANNELS]
        if unknown:
            raise ValidationFailed(
                [ValidationError("notification_preferences", f"Unknown notification channel {unknown[0]}")]
            )
        current_user.notification_preferences = [
            c for c in NOTIFICATION_CHANNELS if c in data.notification_preferences
        ]

    await db.flush()
    await db.refresh(current_user)
    return user_out(current_user)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    user = await db.get(User, user_id)
    if user is None or user.org_id != org_id:
        raise NotFound("User not found")
    return user_out(user)
