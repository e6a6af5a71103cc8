"""
RentHive - Calendar Service
iCalendar (.ics) export of events.

Each user has one subscribable calendar at {user_id}/calendar.ics in
object storage; events are merged into it one request at a time. The
property timeline can also be exported directly.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from icalendar import Calendar, Event
from sqlalchemy import or_, select

from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PermissionDenied, ValidationFailed
from renthive.core.utc import parse_iso, to_utc, utc_now
from renthive.models.models import PropertyUser, TimelineEvent, TimelineEventType
from renthive.services.property_user_service import find_link
from renthive.services.storage import get_storage

logger = logging.getLogger(__name__)

CALENDAR_URL_TTL = 7 * 24 * 60 * 60
PRODID = "-//RentHive//Calendar//EN"


def calendar_path(user_id: str) -> str:
    return f"{user_id}/calendar.ics"


def new_calendar(name: str) -> Calendar:
    calendar = Calendar()
    calendar.add("prodid", PRODID)
    calendar.add("version", "2.0")
    calendar.add("x-wr-calname", name)
    return calendar


def _parse_when(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    try:
        return parse_iso(str(value))
    except ValueError:
        raise ValidationFailed(f"Invalid {field}: {value}")


def build_event(data: dict[str, Any]) -> Event:
    """A VEVENT from {title, description?, startDateTime, endDateTime, location?}."""
    title = data.get("title")
    start = data.get("startDateTime")
    end = data.get("endDateTime")
    if not title or not start or not end:
        raise ValidationFailed("Missing required fields: title, startDateTime, endDateTime")

    event = Event()
    event.add("uid", f"event-{uuid.uuid4().hex}@renthive")
    event.add("summary", title)
    event.add("dtstart", _parse_when(start, "startDateTime"))
    event.add("dtend", _parse_when(end, "endDateTime"))
    event.add("dtstamp", utc_now())
    event.add("created", utc_now())
    event.add("description", data.get("description") or "")
    event.add("location", data.get("location") or "")
    return event


def merge_calendar(existing: Optional[bytes], name: str, events: Iterable[Event]) -> Calendar:
    """
    A fresh calendar holding the existing file's VEVENTs plus new ones.

    An existing file that cannot be parsed is discarded.
    """
    calendar = new_calendar(name)
    if existing:
        try:
            parsed = Calendar.from_ical(existing)
        except ValueError as e:
            logger.warning("Existing calendar is unreadable, starting over: %s", e)
        else:
            kept = parsed.walk("VEVENT")
            for component in kept:
                calendar.add_component(component)
            logger.info("Kept %d existing events", len(kept))
    for event in events:
        calendar.add_component(event)
    return calendar


async def add_events(user_id: str, email: Optional[str], items: list[dict[str, Any]]) -> dict:
    """Merge events into the user's stored calendar; returns a signed URL."""
    if not items:
        raise ValidationFailed("At least one event is required")
    events = [build_event(item) for item in items]

    storage = get_storage()
    path = calendar_path(user_id)
    try:
        existing = await storage.download(path)
    except NotFound:
        existing = None

    calendar = merge_calendar(existing, f"Calendar for {email or user_id}", events)
    await storage.upload(path, calendar.to_ical(), content_type="text/calendar", upsert=True)
    logger.info("Added %d event(s) to calendar %s", len(events), path)
    return {"calendarUrl": await storage.create_signed_url(path, CALENDAR_URL_TTL)}


async def get_calendar_url(user_id: str) -> dict:
    storage = get_storage()
    path = calendar_path(user_id)
    if not await storage.exists(path):
        raise NotFound("Calendar not found. Add an event first.")
    return {"calendarUrl": await storage.create_signed_url(path, CALENDAR_URL_TTL)}


def timeline_event_component(event: TimelineEvent) -> Event:
    start = to_utc(event.start_date)
    component = Event()
    component.add("uid", f"{event.id}@renthive")
    component.add("summary", event.title)
    component.add("dtstamp", utc_now())
    if event.is_all_day:
        end = to_utc(event.end_date).date() if event.end_date else start.date()
        component.add("dtstart", start.date())
        # DTEND is exclusive for all-day events
        component.add("dtend", end + timedelta(days=1))
    else:
        component.add("dtstart", start)
        component.add("dtend", to_utc(event.end_date) if event.end_date else start + timedelta(hours=1))
    if event.description:
        component.add("description", event.description)
    component.add("categories", [event.event_type])
    if event.is_completed:
        component.add("status", "CONFIRMED")
    return component


def render_timeline(events: Iterable[TimelineEvent], name: str = "RentHive Timeline") -> bytes:
    calendar = new_calendar(name)
    for event in events:
        calendar.add_component(timeline_event_component(event))
    return calendar.to_ical()


async def export_timeline(user_id: str, property_id: Optional[str] = None) -> bytes:
    """
    The caller's timeline as an .ics file.

    With a property id: every event of that property the caller can see.
    Without: the caller's own events across their properties.
    """
    async with get_db_session() as session:
        if property_id:
            if await find_link(session, property_id, user_id) is None:
                raise PermissionDenied("You do not have access to this property")
            query = select(TimelineEvent).where(
                TimelineEvent.property_id == property_id,
                or_(
                    TimelineEvent.event_type != TimelineEventType.agreement_task.value,
                    TimelineEvent.user_id == user_id,
                ),
            )
        else:
            accessible = select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
            query = select(TimelineEvent).where(
                TimelineEvent.user_id == user_id,
                TimelineEvent.property_id.in_(accessible),
            )
        result = await session.execute(query.order_by(TimelineEvent.start_date))
        events = list(result.scalars().all())

    logger.info("Exporting %d timeline events for user %s", len(events), user_id)
    return render_timeline(events)
