"""
Users Router
Profile lookups, used when inviting someone to a property.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from renthive.core.errors import NotFound, ValidationFailed
from renthive.core.security import CurrentUser, require_user
from renthive.services.profile_service import get_profile, get_profile_by_email, profile_to_dict

router = APIRouter()


@router.get("/lookup")
async def lookup_user(
    email: Optional[str] = Query(None),
    user: CurrentUser = Depends(require_user),
):
    """Find a user by email address."""
    if not email or not email.strip():
        raise ValidationFailed("Email is required")
    profile = await get_profile_by_email(email)
    if profile is None:
        raise NotFound("User not found")
    return {"success": True, "data": profile_to_dict(profile)}


@router.get("/{user_id}")
async def get_user(user_id: str, user: CurrentUser = Depends(require_user)):
    profile = await get_profile(user_id)
    if profile is None:
        raise NotFound("User not found")
    return {"success": True, "data": profile_to_dict(profile)}
