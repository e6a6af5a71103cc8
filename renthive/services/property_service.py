"""
RentHive - Property Service
Property CRUD. The creator owns the property and is linked as its owner.
"""

import logging
from typing import Any, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, ValidationFailed
from renthive.models.models import (
    Agreement,
    DepositRequest,
    Property,
    PropertyImage,
    PropertyInvitation,
    PropertyRole,
    PropertyUser,
    RepairRequest,
    TimelineEvent,
)
from renthive.services.property_user_service import link_user

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "name",
    "emoji",
    "image_url",
    "is_active",
    "address_line1",
    "address_line2",
    "city",
    "county",
    "postcode",
    "country",
    "property_type",
    "landlord_email",
    "rent_amount",
    "deposit_amount",
    "lease_start_date",
    "lease_end_date",
    "property_details",
}


def property_to_dict(prop: Property) -> dict:
    return {
        "id": prop.id,
        "user_id": prop.user_id,
        "name": prop.name,
        "emoji": prop.emoji,
        "image_url": prop.image_url,
        "is_active": prop.is_active,
        "address_line1": prop.address_line1,
        "address_line2": prop.address_line2,
        "city": prop.city,
        "county": prop.county,
        "postcode": prop.postcode,
        "country": prop.country,
        "property_type": prop.property_type,
        "landlord_email": prop.landlord_email,
        "rent_amount": prop.rent_amount,
        "deposit_amount": prop.deposit_amount,
        "lease_start_date": prop.lease_start_date.isoformat() if prop.lease_start_date else None,
        "lease_end_date": prop.lease_end_date.isoformat() if prop.lease_end_date else None,
        "property_details": prop.property_details or {},
        "created_at": prop.created_at.isoformat() if prop.created_at else None,
        "updated_at": prop.updated_at.isoformat() if prop.updated_at else None,
    }


async def visible_property(session: AsyncSession, property_id: str, user_id: str) -> Optional[Property]:
    """The property if the user owns it or is linked to it."""
    result = await session.execute(
        select(Property)
        .outerjoin(
            PropertyUser,
            (PropertyUser.property_id == Property.id) & (PropertyUser.user_id == user_id),
        )
        .where(
            Property.id == property_id,
            or_(Property.user_id == user_id, PropertyUser.id.is_not(None)),
        )
    )
    return result.scalars().first()


async def list_user_properties(user_id: str) -> list[dict]:
    """Properties the user owns or has been linked to, newest first."""
    async with get_db_session() as session:
        linked_ids = select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
        result = await session.execute(
            select(Property)
            .where(or_(Property.user_id == user_id, Property.id.in_(linked_ids)))
            .order_by(Property.created_at.desc())
        )
        seen: set[str] = set()
        properties = []
        for prop in result.scalars().all():
            if prop.id in seen:
                continue
            seen.add(prop.id)
            properties.append(property_to_dict(prop))
        return properties


async def get_property(property_id: str, user_id: str) -> Optional[dict]:
    async with get_db_session() as session:
        prop = await visible_property(session, property_id, user_id)
        return property_to_dict(prop) if prop else None


async def create_property(user_id: str, data: dict[str, Any]) -> dict:
    """Create a property and link the creator as owner."""
    if not data.get("name") or not data.get("postcode"):
        raise ValidationFailed("Name and postcode are required")

    async with get_db_session() as session:
        values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        if values.get("is_active", True) is None:
            del values["is_active"]
        prop = Property(user_id=user_id, **values)
        session.add(prop)
        await session.flush()
        await link_user(session, prop.id, user_id, PropertyRole.owner.value)
        logger.info("Created property %s for user %s", prop.id, user_id)
        return property_to_dict(prop)


async def update_property(property_id: str, user_id: str, data: dict[str, Any]) -> dict:
    """Owner-only update of the given fields."""
    async with get_db_session() as session:
        prop = await session.get(Property, property_id)
        if prop is None or prop.user_id != user_id:
            raise NotFound("Property not found or you do not have permission to update it")

        for field, value in data.items():
            if field not in EDITABLE_FIELDS:
                continue
            if field in ("name", "postcode") and not value:
                raise ValidationFailed("Name and postcode are required")
            if field == "is_active" and value is None:
                raise ValidationFailed("is_active cannot be null")
            setattr(prop, field, value)

        await session.flush()
        await session.refresh(prop)
        return property_to_dict(prop)


async def delete_property(property_id: str, user_id: str) -> None:
    """Owner-only delete, including everything attached to the property."""
    async with get_db_session() as session:
        prop = await session.get(Property, property_id)
        if prop is None or prop.user_id != user_id:
            raise NotFound("Property not found or you do not have permission to delete it")

        for model in (
            TimelineEvent,
            Agreement,
            PropertyImage,
            RepairRequest,
            DepositRequest,
            PropertyInvitation,
            PropertyUser,
        ):
            await session.execute(delete(model).where(model.property_id == property_id))
        await session.delete(prop)
        logger.info("Deleted property %s", property_id)
