"""
Calendar Router
Subscribable .ics calendars and timeline export.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from renthive.core.security import CurrentUser, require_user
from renthive.services import calendar_service

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class CalendarEventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    start_date_time: Optional[str] = Field(None, alias="startDateTime")
    end_date_time: Optional[str] = Field(None, alias="endDateTime")
    location: Optional[str] = None

    def as_event(self) -> dict:
        return self.model_dump(by_alias=True)


class CalendarEventsIn(BaseModel):
    events: list[CalendarEventIn] = Field(default_factory=list)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/ics")
async def add_event(body: CalendarEventIn, user: CurrentUser = Depends(require_user)):
    """Add one event to your calendar file."""
    data = await calendar_service.add_events(user.id, user.email, [body.as_event()])
    return {"success": True, "message": "Calendar event added successfully", "data": data}


@router.post("/ics/multiple")
async def add_events(body: CalendarEventsIn, user: CurrentUser = Depends(require_user)):
    data = await calendar_service.add_events(user.id, user.email, [e.as_event() for e in body.events])
    return {
        "success": True,
        "message": f"{len(body.events)} calendar events added successfully",
        "data": data,
    }


@router.get("/ics")
async def get_calendar(user: CurrentUser = Depends(require_user)):
    """Signed URL of your calendar file (valid 7 days)."""
    return {"success": True, "data": await calendar_service.get_calendar_url(user.id)}


@router.get("/timeline.ics")
async def export_timeline(
    property_id: Optional[str] = Query(None, alias="propertyId"),
    user: CurrentUser = Depends(require_user),
):
    content = await calendar_service.export_timeline(user.id, property_id)
    return Response(
        content=content,
        media_type="text/calendar",
        headers={"Content-Disposition": 'attachment; filename="timeline.ics"'},
    )
