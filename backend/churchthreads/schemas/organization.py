import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr

from churchthreads.schemas.user import UserOut


class OrganizationCreate(BaseModel):
    name: str
    subdomain: str
    location: str | None = None
    admin_name: str
    admin_email: EmailStr


class OrganizationOut(BaseModel):
    id: uuid.UUID
    name: str
    location: str | None = None
    host: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizationCreated(BaseModel):
    organization: OrganizationOut
    admin: UserOut
    access_token: str
    token_type: str = "bearer"
