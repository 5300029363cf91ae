import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.models.invite import Invite
from churchthreads.models.user import User
from churchthreads.schemas.invite import (
    EmailInvitesCreate,
    InviteCreate,
    InviteOut,
    InviteResultOut,
)
from churchthreads.services.auth import get_org_user
from churchthreads.services.invites import (
    create_and_send_email_invitations,
    create_invitation,
    get_invite,
    has_invite_expired,
    list_invites,
    revoke_invite,
)

router = APIRouter(prefix="/api/orgs/{org_id}/invites", tags=["invites"])


def invite_out(invite: Invite) -> InviteOut:
    out = InviteOut.model_validate(invite)
    out.expired = has_invite_expired(invite)
    return out


@router.post("/", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
async def create(
    data: InviteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    invite = await create_invitation(
        db, current_user, data.type, data.feeds, name=data.name, email=data.email
    )
    return invite_out(invite)


@router.post("/email", response_model=list[InviteResultOut])
async def send_email_invites(
    data: EmailInvitesCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    results = await create_and_send_email_invitations(
        db,
        current_user,
        data.feeds,
        [r.model_dump() for r in data.users_to_invite],
    )
    return [InviteResultOut.model_validate(r) for r in results]


@router.get("/", response_model=list[InviteOut])
async def list_all(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    return [invite_out(i) for i in await list_invites(db, current_user)]


@router.delete("/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke(
    invite_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    invite = await get_invite(db, current_user.org_id, invite_id)
    await revoke_invite(db, current_user, invite)
