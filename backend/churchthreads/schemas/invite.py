import uuid
from datetime import datetime

from pydantic import BaseModel


class InviteCreate(BaseModel):
    type: str = "link"  # 'email' or 'link'
    name: str | None = None
    email: str | None = None
    feeds: list[uuid.UUID] = []


class InviteRecipient(BaseModel):
    email: str
    name: str | None = None


class EmailInvitesCreate(BaseModel):
    feeds: list[uuid.UUID] = []
    users_to_invite: list[InviteRecipient]


class InviteResultOut(BaseModel):
    email: str
    success: bool
    error: str | None = None
    invite_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}


class InviteOut(BaseModel):
    id: uuid.UUID
    type: str
    name: str | None = None
    email: str | None = None
    feeds: list[uuid.UUID] = []
    token: str
    created_by: uuid.UUID
    expires_at: datetime
    max_uses: int | None = None
    use_count: int
    last_used: datetime | None = None
    expired: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}
