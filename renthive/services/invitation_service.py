"""
RentHive - Invitation Service
Email invitations that grant a user access to a property once accepted.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy import func, select

from renthive.core.config import get_settings
from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PermissionDenied, ValidationFailed
from renthive.core.security import CurrentUser
from renthive.core.utc import to_utc, utc_now
from renthive.models.models import (
    InvitationStatus,
    Profile,
    Property,
    PropertyInvitation,
    PropertyRole,
)
from renthive.services import email_service
from renthive.services.property_user_service import link_to_dict, link_user

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)


def invitation_to_dict(invitation: PropertyInvitation) -> dict:
    return {
        "id": invitation.id,
        "property_id": invitation.property_id,
        "email": invitation.email,
        "role": invitation.role,
        "status": invitation.status,
        "invited_by": invitation.invited_by,
        "expires_at": to_utc(invitation.expires_at).isoformat(),
        "created_at": invitation.created_at.isoformat() if invitation.created_at else None,
    }


def accept_url(token: str) -> str:
    return f"{get_settings().frontend_url.rstrip('/')}/accept-invitation?token={token}"


async def create_invitation(property_id: str, email: str, role: str, inviter: CurrentUser) -> dict:
    """
    Store a pending invitation and email the invitee a link to accept it.

    The invitation is kept even when the email cannot be delivered; the
    error is logged and the caller can resend.
    """
    email = (email or "").strip().lower()
    if not email:
        raise ValidationFailed("Email is required")
    if role not in {r.value for r in PropertyRole}:
        raise ValidationFailed(f"Invalid role: {role}")

    async with get_db_session() as session:
        prop = await session.get(Property, property_id)
        if prop is None:
            raise NotFound("Property not found")

        invitation = PropertyInvitation(
            property_id=property_id,
            email=email,
            role=role,
            token=str(uuid.uuid4()),
            status=InvitationStatus.pending.value,
            invited_by=inviter.id,
            expires_at=utc_now() + INVITATION_TTL,
        )
        session.add(invitation)
        await session.flush()
        property_name = prop.name
        data = invitation_to_dict(invitation)
        token = invitation.token

    html = email_service.render_template(
        "invitation_email.html",
        title="You're invited to a property",
        inviter_name=inviter.sender_name,
        property_name=property_name,
        role=role,
        accept_url=accept_url(token),
        expires_on=email_service.format_date(to_utc(invitation.expires_at)),
    )
    try:
        await email_service.send_email(
            to=email,
            subject=f"Invitation to Property: {property_name}",
            html=html,
            sender_name=inviter.sender_name,
            reply_to=inviter.email,
        )
        data["email_sent"] = True
    except Exception as e:
        logger.warning("Invitation %s saved but email failed: %s", data["id"], e)
        data["email_sent"] = False

    logger.info("Invited %s to property %s as %s", email, property_id, role)
    return data


async def accept_invitation(token: str, user: CurrentUser) -> dict:
    """Link the caller to the invited property with the invited role."""
    async with get_db_session() as session:
        result = await session.execute(
            select(PropertyInvitation).where(
                PropertyInvitation.token == token,
                PropertyInvitation.status == InvitationStatus.pending.value,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None or to_utc(invitation.expires_at) < utc_now():
            raise NotFound("Invitation not found or expired")

        profile_result = await session.execute(
            select(Profile).where(func.lower(Profile.email) == invitation.email)
        )
        invitee = profile_result.scalars().first()
        if invitee is None:
            raise NotFound("User not found")
        if invitee.id != user.id:
            raise PermissionDenied("This invitation was sent to a different email address")

        invitation.status = InvitationStatus.accepted.value
        link = await link_user(session, invitation.property_id, user.id, invitation.role)
        logger.info("User %s accepted invitation to property %s", user.id, invitation.property_id)
        return link_to_dict(link)
