"""
RentHive - Property User Service
Who can see a property, and in which role (owner or tenant).
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from renthive.core.database import get_db_session
from renthive.core.errors import ValidationFailed
from renthive.models.models import Profile, PropertyRole, PropertyUser

logger = logging.getLogger(__name__)


# =============================================================================
# Session-level helpers (shared with other services)
# =============================================================================

async def find_link(session: AsyncSession, property_id: str, user_id: str) -> Optional[PropertyUser]:
    result = await session.execute(
        select(PropertyUser).where(
            PropertyUser.property_id == property_id,
            PropertyUser.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def role_in_session(session: AsyncSession, property_id: str, user_id: str) -> Optional[str]:
    link = await find_link(session, property_id, user_id)
    return link.user_role if link else None


async def link_user(session: AsyncSession, property_id: str, user_id: str, role: str) -> PropertyUser:
    """Insert a link unless one exists; the existing row wins."""
    existing = await find_link(session, property_id, user_id)
    if existing is not None:
        return existing
    link = PropertyUser(property_id=property_id, user_id=user_id, user_role=role)
    session.add(link)
    await session.flush()
    logger.info("Linked user %s to property %s as %s", user_id, property_id, role)
    return link


def link_to_dict(link: PropertyUser, profile: Optional[Profile] = None) -> dict:
    data = {
        "id": link.id,
        "property_id": link.property_id,
        "user_id": link.user_id,
        "user_role": link.user_role,
        "created_at": link.created_at.isoformat() if link.created_at else None,
    }
    if profile is not None:
        data["profile"] = {
            "id": profile.id,
            "display_name": profile.display_name,
            "email": profile.email,
            "avatar_url": profile.avatar_url,
        }
    else:
        data["profile"] = None
    return data


# =============================================================================
# Public operations
# =============================================================================

async def get_property_users(property_id: str) -> list[dict]:
    """All members of a property with their profile."""
    async with get_db_session() as session:
        result = await session.execute(
            select(PropertyUser, Profile)
            .outerjoin(Profile, Profile.id == PropertyUser.user_id)
            .where(PropertyUser.property_id == property_id)
            .order_by(PropertyUser.created_at)
        )
        return [link_to_dict(link, profile) for link, profile in result.all()]


async def get_user_property_ids(user_id: str) -> list[str]:
    async with get_db_session() as session:
        result = await session.execute(
            select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
        )
        return list(result.scalars().all())


async def add_user_to_property(property_id: str, user_id: str, role: str = PropertyRole.tenant.value) -> dict:
    """Link a user to a property. Idempotent: an existing link is returned unchanged."""
    if role not in {r.value for r in PropertyRole}:
        raise ValidationFailed(f"Invalid role: {role}")
    async with get_db_session() as session:
        link = await link_user(session, property_id, user_id, role)
        return link_to_dict(link)


async def remove_user_from_property(property_id: str, user_id: str) -> bool:
    """
    Remove a member. The last owner of a property cannot be removed.

    Returns False when the user was not a member.
    """
    async with get_db_session() as session:
        link = await find_link(session, property_id, user_id)
        if link is None:
            return False

        if link.user_role == PropertyRole.owner.value:
            owners = await session.scalar(
                select(func.count())
                .select_from(PropertyUser)
                .where(
                    PropertyUser.property_id == property_id,
                    PropertyUser.user_role == PropertyRole.owner.value,
                )
            )
            if owners <= 1:
                raise ValidationFailed("Cannot remove the last owner of a property")

        await session.delete(link)
        logger.info("Removed user %s from property %s", user_id, property_id)
        return True


async def check_user_role(property_id: str, user_id: str) -> Optional[str]:
    """The user's role on the property, or None."""
    async with get_db_session() as session:
        return await role_in_session(session, property_id, user_id)


async def has_access(property_id: str, user_id: str) -> bool:
    return await check_user_role(property_id, user_id) is not None


async def is_owner(property_id: str, user_id: str) -> bool:
    return await check_user_role(property_id, user_id) == PropertyRole.owner.value
