import logging
import re
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.errors import Conflict, NotFound, ValidationFailed
from churchthreads.models.organization import Organization
from churchthreads.models.user import User
from churchthreads.validation import (
    PERSON_NAME_RULES,
    validate_email_field,
    validate_text_field,
)

logger = logging.getLogger(__name__)

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


def host_for_subdomain(subdomain: str) -> str:
    return f"{subdomain.lower()}.{settings.host}"


async def get_organization(db: AsyncSession, org_id: uuid.UUID) -> Organization:
    org = await db.get(Organization, org_id)
    if org is None:
        raise NotFound("Organization not found")
    return org


async def get_organization_by_subdomain(db: AsyncSession, subdomain: str) -> Organization:
    result = await db.execute(
        select(Organization).where(Organization.host == host_for_subdomain(subdomain))
    )
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFound("Organization not found")
    return org


async def create_organization(
    db: AsyncSession,
    name: str,
    subdomain: str,
    admin_name: str,
    admin_email: str,
    location: str | None = None,
) -> tuple[Organization, User]:
    """Creates a tenant together with its first admin."""
    validation = validate_text_field(name, required=True, max_length=100, field_name="Name")
    validation.merge(
        validate_text_field(admin_name, field_name="Admin name", **PERSON_NAME_RULES)
    )
    validation.merge(validate_email_field(admin_email, required=True, field_name="Admin email"))
    subdomain = (subdomain or "").strip().lower()
    if not SUBDOMAIN_PATTERN.match(subdomain):
        validation.add("subdomain", "Subdomain may only contain letters, digits and dashes")
    if not validation.valid:
        raise ValidationFailed(validation.errors)

    host = host_for_subdomain(subdomain)
    existing = await db.execute(select(Organization.id).where(Organization.host == host))
    if existing.first() is not None:
        raise Conflict(f"Subdomain {subdomain} is already taken")

    org = Organization(name=name.strip(), location=(location or "").strip() or None, host=host)
    db.add(org)
    await db.flush()

    admin = User(
        org_id=org.id,
        email=admin_email.strip().lower(),
        name=admin_name.strip(),
        role="admin",
    )
    db.add(admin)
    await db.flush()
    logger.info(f"Organization {org.name} ({host}) created with admin {admin.email}")
    return org, admin
