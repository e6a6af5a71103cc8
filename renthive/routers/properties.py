"""
Properties Router
Property CRUD. Anyone linked to a property can read it; only its owner can
change or delete it.
"""

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from renthive.core.errors import NotFound
from renthive.core.security import CurrentUser, require_user
from renthive.services import property_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class PropertyFields(BaseModel):
    """Editable property attributes."""
    name: Optional[str] = Field(None, max_length=255)
    emoji: Optional[str] = Field(None, max_length=16)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    postcode: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = None
    property_type: Optional[str] = None
    landlord_email: Optional[str] = None
    rent_amount: Optional[float] = Field(None, ge=0)
    deposit_amount: Optional[float] = Field(None, ge=0)
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    property_details: Optional[dict[str, Any]] = Field(
        None, description="Free-form details, e.g. rent_due_day, currency"
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("")
async def list_properties(user: CurrentUser = Depends(require_user)):
    """Properties the caller owns or has been given access to."""
    return {"success": True, "data": await property_service.list_user_properties(user.id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_property(body: PropertyFields, user: CurrentUser = Depends(require_user)):
    data = body.model_dump(exclude_unset=True)
    prop = await property_service.create_property(user.id, data)
    return {"success": True, "message": "Property created successfully", "data": prop}


@router.get("/{property_id}")
async def get_property(property_id: str, user: CurrentUser = Depends(require_user)):
    prop = await property_service.get_property(property_id, user.id)
    if prop is None:
        raise NotFound("Property not found")
    return {"success": True, "data": prop}


@router.put("/{property_id}")
async def update_property(
    property_id: str,
    body: PropertyFields,
    user: CurrentUser = Depends(require_user),
):
    data = body.model_dump(exclude_unset=True)
    prop = await property_service.update_property(property_id, user.id, data)
    return {"success": True, "message": "Property updated successfully", "data": prop}


@router.delete("/{property_id}")
async def delete_property(property_id: str, user: CurrentUser = Depends(require_user)):
    await property_service.delete_property(property_id, user.id)
    return {"success": True, "message": "Property deleted successfully"}
