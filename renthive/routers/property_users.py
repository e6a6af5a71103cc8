"""
Property Users Router
Who can see a property: member listing, invitations and removal.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from renthive.core.errors import NotFound, PermissionDenied, ValidationFailed
from renthive.core.security import CurrentUser, require_user
from renthive.models.models import PropertyRole
from renthive.services import invitation_service, property_user_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class InviteRequest(BaseModel):
    email: Optional[str] = None
    role: str = Field(PropertyRole.tenant.value, description="owner or tenant")


class AcceptInvitationRequest(BaseModel):
    token: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/properties/{property_id}/users")
async def list_property_users(property_id: str, user: CurrentUser = Depends(require_user)):
    if not await property_user_service.has_access(property_id, user.id):
        raise PermissionDenied("You do not have access to this property")
    return {"success": True, "data": await property_user_service.get_property_users(property_id)}


@router.post("/properties/{property_id}/users", status_code=status.HTTP_201_CREATED)
async def invite_user(
    property_id: str,
    body: InviteRequest,
    user: CurrentUser = Depends(require_user),
):
    """Invite someone by email. Owners only."""
    if not await property_user_service.is_owner(property_id, user.id):
        raise PermissionDenied("Only property owners can invite users")
    invitation = await invitation_service.create_invitation(property_id, body.email or "", body.role, user)
    return {"success": True, "message": "Invitation sent successfully", "data": invitation}


@router.delete("/properties/{property_id}/users/{user_id}")
async def remove_property_user(
    property_id: str,
    user_id: str,
    user: CurrentUser = Depends(require_user),
):
    """Owners can remove anyone; members can remove themselves."""
    if user_id != user.id and not await property_user_service.is_owner(property_id, user.id):
        raise PermissionDenied("Only property owners can remove other users")
    if not await property_user_service.remove_user_from_property(property_id, user_id):
        raise NotFound("User is not a member of this property")
    return {"success": True, "message": "User removed from property"}


@router.post("/invitations/accept")
async def accept_invitation(body: AcceptInvitationRequest, user: CurrentUser = Depends(require_user)):
    if not body.token:
        raise ValidationFailed("Invitation token is required")
    link = await invitation_service.accept_invitation(body.token, user)
    return {"success": True, "message": "Invitation accepted", "data": link}
