"""
RentHive - Landlord Request Service
Repair and deposit requests: emailed to the property's landlord with the
selected photos attached, then logged.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select

from renthive.core.database import get_db_session
from renthive.core.errors import ValidationFailed
from renthive.core.security import CurrentUser
from renthive.models.models import DepositRequest, Property, RepairRequest
from renthive.services import email_service, image_service
from renthive.services.property_service import visible_property

logger = logging.getLogger(__name__)


def _deposit_details(prop: Property) -> list[tuple[str, str]]:
    lease = (
        f"{email_service.format_date(prop.lease_start_date)} to "
        f"{email_service.format_date(prop.lease_end_date)}"
    )
    return [
        ("Requested Deposit Amount", email_service.format_currency(prop.deposit_amount)),
        ("Lease Period", lease),
    ]


@dataclass(frozen=True)
class RequestKind:
    label: str
    model: type
    details: Optional[Callable[[Property], list[tuple[str, str]]]] = None


REPAIR = RequestKind("Repair", RepairRequest)
DEPOSIT = RequestKind("Deposit", DepositRequest, _deposit_details)


def request_to_dict(row) -> dict:
    return {
        "id": row.id,
        "property_id": row.property_id,
        "user_id": row.user_id,
        "message": row.message,
        "image_ids": row.image_ids or [],
        "status": row.status,
        "email_id": row.email_id,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


async def send_request(
    kind: RequestKind,
    user: CurrentUser,
    property_id: Optional[str],
    message: Optional[str],
    image_ids: Optional[list[Optional[str]]] = None,
) -> dict:
    """Email the landlord and record the request; returns the stored row."""
    if not property_id:
        raise ValidationFailed("Property ID is required")
    if not message or not message.strip():
        raise ValidationFailed("Message is required")
    image_ids = [image_id for image_id in image_ids or [] if image_id]

    async with get_db_session() as session:
        prop = await visible_property(session, property_id, user.id)
    if prop is None:
        raise ValidationFailed("Property not found")
    if not prop.landlord_email:
        raise ValidationFailed("Landlord email not set for this property")

    attachments = await image_service.load_attachments(image_ids, property_id)
    html = email_service.render_request_email(
        title=f"{kind.label} Request",
        sender_name=user.sender_name,
        prop=prop,
        message=message,
        image_count=len(attachments),
        additional_info=kind.details(prop) if kind.details else None,
    )
    email_id = await email_service.send_email(
        to=prop.landlord_email,
        subject=f"{kind.label} Request for {prop.name}",
        html=html,
        sender_name=user.sender_name,
        reply_to=user.email,
        attachments=[email_service.build_attachment(name, content) for name, content in attachments],
    )

    async with get_db_session() as session:
        row = kind.model(
            property_id=property_id,
            user_id=user.id,
            message=message,
            image_ids=image_ids,
            status="sent",
            email_id=email_id,
        )
        session.add(row)
        await session.flush()
        logger.info("%s request %s sent for property %s", kind.label, row.id, property_id)
        return request_to_dict(row)


async def list_requests(kind: RequestKind, user_id: str, property_id: Optional[str]) -> list[dict]:
    """Requests for a property the caller can see, newest first."""
    if not property_id:
        raise ValidationFailed("Property ID is required")
    async with get_db_session() as session:
        if await visible_property(session, property_id, user_id) is None:
            raise ValidationFailed("Property not found")
        result = await session.execute(
            select(kind.model)
            .where(kind.model.property_id == property_id)
            .order_by(kind.model.created_at.desc())
        )
        return [request_to_dict(row) for row in result.scalars().all()]
