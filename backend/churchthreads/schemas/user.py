import uuid
from datetime import datetime

from pydantic import BaseModel


class UserOut(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    email: str
    name: str
    role: str
    notification_preferences: list[str] = []
    image_upload_id: uuid.UUID | None = None
    image_url: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserBrief(BaseModel):
    id: uuid.UUID
    name: str
    image_upload_id: uuid.UUID | None = None

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    name: str | None = None
    notification_preferences: list[str] | None = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
