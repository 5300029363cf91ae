import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.schemas.registration import (
    InviteLookupOut,
    RegistrationCreate,
    RegistrationOut,
)
from churchthreads.services.identity import IdentityClient, get_identity_client
from churchthreads.services.organizations import get_organization
from churchthreads.services.registration import lookup_invite_by_token, register

router = APIRouter(prefix="/api/orgs/{org_id}/register", tags=["registration"])


@router.get("/invite", response_model=InviteLookupOut)
async def lookup_invite(
    org_id: uuid.UUID,
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Pre-fills the registration form; no authentication required."""
    await get_organization(db, org_id)
    return InviteLookupOut(**await lookup_invite_by_token(db, org_id, token))


@router.post("/", response_model=RegistrationOut, status_code=status.HTTP_201_CREATED)
async def register_user(
    org_id: uuid.UUID,
    data: RegistrationCreate,
    db: AsyncSession = Depends(get_db),
    identity: IdentityClient = Depends(get_identity_client),
):
    await get_organization(db, org_id)
    user = await register(db, identity, org_id, data.token, data.name, data.email)
    return RegistrationOut(email=user.email)
