"""
Agreements Router
Shared checklists on a property (move-in checks, house rules, chores).
Check items can be assigned to members and show up on their timeline.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from renthive.core.security import CurrentUser, require_user
from renthive.services import agreement_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class AgreementFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, max_length=255)
    property_id: Optional[str] = Field(None, alias="propertyId")
    check_items: Optional[list[Any]] = Field(
        None, alias="checkItems", description="Strings or {text, checked, assigned_to} objects"
    )
    due_date: Optional[str] = Field(None, alias="dueDate", description="ISO date")


class AgreementTaskUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_index: Optional[int] = Field(None, alias="taskIndex")
    action: Optional[str] = Field(None, description="assign, unassign or complete")
    user_id: Optional[str] = Field(None, alias="userId", description="Assignee (default: you)")


# =============================================================================
# Endpoints
# =============================================================================

@router.get("")
async def list_agreements(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    return {"success": True, "data": await agreement_service.list_agreements(user.id, property_id)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_agreement(body: AgreementFields, user: CurrentUser = Depends(require_user)):
    data = body.model_dump(by_alias=True, exclude_unset=True)
    agreement = await agreement_service.create_agreement(user.id, data)
    return {"success": True, "message": "Agreement created successfully", "data": agreement}


@router.get("/{agreement_id}")
async def get_agreement(agreement_id: str, user: CurrentUser = Depends(require_user)):
    return {"success": True, "data": await agreement_service.get_agreement(agreement_id, user.id)}


@router.put("/{agreement_id}")
async def update_agreement(
    agreement_id: str,
    body: AgreementFields,
    user: CurrentUser = Depends(require_user),
):
    data = body.model_dump(by_alias=True, exclude_unset=True)
    agreement = await agreement_service.update_agreement(agreement_id, user.id, data)
    return {"success": True, "message": "Agreement updated successfully", "data": agreement}


@router.delete("/{agreement_id}")
async def delete_agreement(agreement_id: str, user: CurrentUser = Depends(require_user)):
    await agreement_service.delete_agreement(agreement_id, user.id)
    return {"success": True, "message": "Agreement deleted successfully"}


@router.put("/{agreement_id}/tasks")
async def update_agreement_task(
    agreement_id: str,
    body: AgreementTaskUpdate,
    user: CurrentUser = Depends(require_user),
):
    agreement = await agreement_service.update_agreement_task(
        agreement_id,
        body.task_index,
        body.action or "",
        user.id,
        body.user_id,
    )
    return {"success": True, "data": agreement}
