import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.schemas.organization import (
    OrganizationCreate,
    OrganizationCreated,
    OrganizationOut,
)
from churchthreads.schemas.user import UserOut
from churchthreads.services.auth import create_access_token
from churchthreads.services.organizations import (
    create_organization,
    get_organization,
    get_organization_by_subdomain,
)

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


@router.post("/", response_model=OrganizationCreated, status_code=status.HTTP_201_CREATED)
async def create(data: OrganizationCreate, db: AsyncSession = Depends(get_db)):
    org, admin = await create_organization(
        db,
        data.name,
        data.subdomain,
        data.admin_name,
        data.admin_email,
        location=data.location,
    )
    await db.refresh(org)
    await db.refresh(admin)
    return OrganizationCreated(
        organization=OrganizationOut.model_validate(org),
        admin=UserOut.model_validate(admin),
        access_token=create_access_token(admin.id, org.id),
    )


@router.get("/by-subdomain/{subdomain}", response_model=OrganizationOut)
async def by_subdomain(subdomain: str, db: AsyncSession = Depends(get_db)):
    return OrganizationOut.model_validate(await get_organization_by_subdomain(db, subdomain))


@router.get("/{org_id}", response_model=OrganizationOut)
async def get_one(org_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return OrganizationOut.model_validate(await get_organization(db, org_id))
