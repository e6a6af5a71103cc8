"""
Requests Router
Repair and deposit requests, emailed to the property's landlord.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from renthive.core.security import CurrentUser, require_user
from renthive.services import request_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class LandlordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    image_ids: list[Optional[str]] = Field(
        default_factory=list, alias="imageIds", description="Ids of property images to attach"
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/repair-requests", status_code=status.HTTP_201_CREATED)
async def send_repair_request(
    body: LandlordRequest,
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    row = await request_service.send_request(
        request_service.REPAIR, user, property_id, body.message, body.image_ids
    )
    return {"success": True, "message": "Repair request sent successfully", "data": row}


@router.get("/repair-requests")
async def list_repair_requests(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    rows = await request_service.list_requests(request_service.REPAIR, user.id, property_id)
    return {"success": True, "data": rows}


@router.post("/deposit-requests", status_code=status.HTTP_201_CREATED)
async def send_deposit_request(
    body: LandlordRequest,
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    """The email includes the deposit amount and lease period."""
    row = await request_service.send_request(
        request_service.DEPOSIT, user, property_id, body.message, body.image_ids
    )
    return {"success": True, "message": "Deposit request sent successfully", "data": row}


@router.get("/deposit-requests")
async def list_deposit_requests(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    rows = await request_service.list_requests(request_service.DEPOSIT, user.id, property_id)
    return {"success": True, "data": rows}
