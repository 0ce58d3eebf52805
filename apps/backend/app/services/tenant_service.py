"""Tenant utility functions."""

import re
import secrets

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import DEFAULT_BUSINESS_NAME
from app.models.tenant import Tenant

_SLUG_MAX_ATTEMPTS = 5


def slugify(value: str) -> str:
    """Lower-case, ASCII, dash-separated slug. Empty input gives 'profile'."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:80] or "profile"


async def create_tenant_for_user(
    session: AsyncSession,
    email: str,
    business_name: str | None = None,
) -> Tenant:
    """
    Create the tenant (business profile) owned by a newly registered user.

    The slug is derived from the business name, or the email's local part,
    and gets a random suffix when already taken.

    Returns:
        The flushed Tenant object
    """
    name = (business_name or "").strip() or DEFAULT_BUSINESS_NAME
    base = slugify(business_name or email.split("@", 1)[0])

    for attempt in range(_SLUG_MAX_ATTEMPTS):
        slug = base if attempt == 0 else f"{base}-{secrets.token_hex(3)}"

        existing = await session.execute(select(Tenant.id).where(Tenant.slug == slug))
        if existing.scalar_one_or_none() is not None:
            continue

        tenant = Tenant(name=name, slug=slug, display_name=business_name, is_active=True)
        try:
            async with session.begin_nested():
                session.add(tenant)
                await session.flush()
        except IntegrityError:
            # Another concurrent registration took the slug first
            continue
        return tenant

    raise RuntimeError(f"Could not allocate a unique slug for '{base}'")
