from pydantic import BaseModel


class InviteLookupOut(BaseModel):
    email: str | None = None
    name: str | None = None
    error: str | None = None


class RegistrationCreate(BaseModel):
    token: str
    name: str
    email: str


class RegistrationOut(BaseModel):
    success: bool = True
    email: str
