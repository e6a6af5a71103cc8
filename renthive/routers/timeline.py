"""
Timeline Router
Property timeline events: manual CRUD, reminders and auto-generation from
the property's lease details.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from renthive.core.errors import NotFound
from renthive.core.security import CurrentUser, require_user
from renthive.services import timeline_service
from renthive.services.timeline_generators import TimelineSyncOptions

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class TimelineEventCreate(BaseModel):
    """Create a timeline event on a property."""
    property_id: Optional[str] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    event_type: Optional[str] = Field(
        None, description="lease_start, lease_end, rent_due, inspection, maintenance, agreement_task, other"
    )
    start_date: Optional[str] = Field(None, description="ISO date or datetime")
    end_date: Optional[str] = None
    is_all_day: Optional[bool] = None
    recurrence_type: Optional[str] = Field(None, description="none, daily, weekly, monthly, quarterly, yearly")
    recurrence_end_date: Optional[str] = None
    notification_days_before: Optional[int] = Field(None, ge=0, le=365)
    is_completed: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None


class TimelineEventUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    event_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_all_day: Optional[bool] = None
    recurrence_type: Optional[str] = None
    recurrence_end_date: Optional[str] = None
    notification_days_before: Optional[int] = Field(None, ge=0, le=365)
    is_completed: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None


class TimelineSyncRequest(BaseModel):
    options: Optional[TimelineSyncOptions] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(body: TimelineEventCreate, user: CurrentUser = Depends(require_user)):
    event = await timeline_service.create_event(body.model_dump(exclude_unset=True), user.id)
    return {"success": True, "data": event}


@router.put("/events/{event_id}")
async def update_event(
    event_id: str,
    body: TimelineEventUpdate,
    user: CurrentUser = Depends(require_user),
):
    """
    Update an event you created.

    Completing an agreement task event also ticks the agreement's item.
    """
    event = await timeline_service.update_event(event_id, body.model_dump(exclude_unset=True), user.id)
    if event is None:
        raise NotFound("Event not found or not authorized to update")
    return {"success": True, "data": event}


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: str, user: CurrentUser = Depends(require_user)):
    if not await timeline_service.delete_event(event_id, user.id):
        raise NotFound("Event not found or not authorized to delete")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/all")
async def all_events(user: CurrentUser = Depends(require_user)):
    """Your events across all your properties, with property names."""
    return {"success": True, "data": await timeline_service.get_all_user_events(user.id)}


@router.get("/upcoming")
async def upcoming_events(
    days: int = Query(30, ge=0, le=365),
    user: CurrentUser = Depends(require_user),
):
    """Events in the next `days` days that are inside their reminder window."""
    return {"success": True, "data": await timeline_service.get_upcoming_events(user.id, days)}


@router.get("/properties/{property_id}/events")
async def property_events(property_id: str, user: CurrentUser = Depends(require_user)):
    return {"success": True, "data": await timeline_service.get_events_by_property(property_id, user.id)}


@router.post("/properties/{property_id}/sync")
async def sync_property(
    property_id: str,
    body: Optional[TimelineSyncRequest] = None,
    user: CurrentUser = Depends(require_user),
):
    """
    Generate events from the property's lease details.

    Options (camelCase):
    - autoGenerateRentDueDates / autoGenerateLeaseEvents (default on)
    - upfrontRentPaid, rentDueDay, startDate
    - includeInspections (+ inspectionFrequency), includeMaintenanceReminders,
      includePropertyTaxes, includeInsurance
    - clearAllEvents: delete every event of the property instead
    """
    options = body.options if body else None
    events = await timeline_service.sync_property_timeline(property_id, user.id, options)
    return {"success": True, "message": "Timeline synchronized", "data": events}
