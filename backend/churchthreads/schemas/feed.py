import uuid
from datetime import datetime

from pydantic import BaseModel

from churchthreads.schemas.user import UserBrief


class FeedCreate(BaseModel):
    name: str
    description: str | None = None
    privacy: str = "private"  # 'private', 'open', 'public'
    member_permissions: list[str] = []  # subset of 'post', 'message'


class FeedUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    privacy: str | None = None
    member_permissions: list[str] | None = None


class FeedOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    name: str
    description: str | None = None
    privacy: str
    member_permissions: list[str] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class FeedWithMembership(FeedOut):
    is_member: bool = False
    is_owner: bool = False
    member_count: int = 0


class FeedMemberOut(BaseModel):
    user: UserBrief
    owner: bool
    joined_at: datetime


class FeedPermissionOut(BaseModel):
    action: str
    allowed: bool
    reason: str | None = None
