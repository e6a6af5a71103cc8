"""
RentHive - Timeline Service
CRUD for timeline events, notification filtering and property sync.

Events belong to the user who created them. Everyone linked to a property
sees its events, except agreement tasks, which only their assignee sees.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PermissionDenied, ValidationFailed
from renthive.core.utc import parse_iso, start_of_day, to_utc, utc_now_iso, utc_today
from renthive.models.models import (
    Agreement,
    Property,
    PropertyUser,
    RecurrenceType,
    TimelineEvent,
    TimelineEventType,
)
from renthive.services import timeline_generators as generators
from renthive.services.property_user_service import find_link
from renthive.services.timeline_generators import LeaseFacts, TimelineSyncOptions

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "title",
    "description",
    "event_type",
    "start_date",
    "end_date",
    "is_all_day",
    "recurrence_type",
    "recurrence_end_date",
    "notification_days_before",
    "is_completed",
    "metadata",
}
DATETIME_FIELDS = {"start_date", "end_date", "recurrence_end_date"}
NOT_NULL_FIELDS = {"title", "is_all_day", "is_completed"}


# =============================================================================
# Helper Functions
# =============================================================================

def to_event_datetime(value: Any) -> Optional[datetime]:
    """Accept datetimes, dates and ISO strings; dates become UTC midnight."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return start_of_day(value)
    try:
        text = str(value).strip()
        if len(text) == 10:
            return start_of_day(date.fromisoformat(text))
        return parse_iso(text)
    except ValueError:
        raise ValidationFailed(f"Invalid date format: {value}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return to_utc(value).isoformat() if value else None


def event_to_dict(event: TimelineEvent, property_name: Optional[str] = None) -> dict:
    data = {
        "id": event.id,
        "property_id": event.property_id,
        "user_id": event.user_id,
        "title": event.title,
        "description": event.description,
        "event_type": event.event_type,
        "start_date": _iso(event.start_date),
        "end_date": _iso(event.end_date),
        "is_all_day": bool(event.is_all_day),
        "recurrence_type": event.recurrence_type or RecurrenceType.none.value,
        "recurrence_end_date": _iso(event.recurrence_end_date),
        "notification_days_before": event.notification_days_before,
        "is_completed": bool(event.is_completed),
        "metadata": event.event_metadata,
        "created_at": _iso(event.created_at),
        "updated_at": _iso(event.updated_at),
    }
    if property_name is not None:
        data["property_name"] = property_name
    return data


def _apply_fields(event: TimelineEvent, data: dict[str, Any]) -> None:
    for field, value in data.items():
        if field not in EDITABLE_FIELDS:
            continue
        if field in NOT_NULL_FIELDS and value is None:
            raise ValidationFailed(f"{field} cannot be null")
        if field in DATETIME_FIELDS:
            value = to_event_datetime(value)
            if field == "start_date" and value is None:
                raise ValidationFailed("Start date is required")
        if field == "event_type" and value not in {t.value for t in TimelineEventType}:
            raise ValidationFailed(f"Invalid event_type: {value}")
        if field == "recurrence_type":
            value = value or RecurrenceType.none.value
            if value not in {r.value for r in RecurrenceType}:
                raise ValidationFailed(f"Invalid recurrence_type: {value}")
        if field == "metadata":
            event.event_metadata = value
            continue
        setattr(event, field, value)


async def _property_view(session: AsyncSession, property_id: str, user_id: str) -> list[dict]:
    """Events of a property as seen by one member."""
    await session.flush()
    result = await session.execute(
        select(TimelineEvent)
        .where(
            TimelineEvent.property_id == property_id,
            or_(
                TimelineEvent.event_type != TimelineEventType.agreement_task.value,
                TimelineEvent.user_id == user_id,
            ),
        )
        .order_by(TimelineEvent.start_date)
    )
    return [event_to_dict(event) for event in result.scalars().all()]


async def sync_agreement_item(
    session: AsyncSession,
    event: TimelineEvent,
    completed: bool,
    user_id: str,
) -> None:
    """Mirror an agreement task event's completion onto its check item."""
    metadata = event.event_metadata or {}
    agreement_id = metadata.get("agreement_id")
    item_index = metadata.get("item_index")
    if not agreement_id or item_index is None:
        return

    agreement = await session.get(Agreement, agreement_id)
    if agreement is None:
        logger.warning("Agreement %s for task event %s no longer exists", agreement_id, event.id)
        return

    items = [dict(item) for item in agreement.check_items or []]
    if not 0 <= item_index < len(items):
        return

    item = items[item_index]
    item["checked"] = completed
    if completed:
        item["completed_by"] = user_id
        item["completed_at"] = utc_now_iso()
    else:
        item.pop("completed_by", None)
        item.pop("completed_at", None)
    # A new list so the JSON column is seen as changed
    agreement.check_items = items
    logger.info("Synced agreement %s item %s completed=%s", agreement_id, item_index, completed)


# =============================================================================
# Event CRUD
# =============================================================================

async def create_event(data: dict[str, Any], user_id: str) -> dict:
    """Create an event owned by user_id on a property they can access."""
    property_id = data.get("property_id")
    if not property_id or not data.get("title") or not data.get("start_date"):
        raise ValidationFailed("property_id, title and start_date are required")

    async with get_db_session() as session:
        if await find_link(session, property_id, user_id) is None:
            raise PermissionDenied("You do not have access to this property")

        event = TimelineEvent(
            property_id=property_id,
            user_id=user_id,
            event_type=TimelineEventType.other.value,
            is_all_day=False,
            recurrence_type=RecurrenceType.none.value,
            is_completed=False,
        )
        _apply_fields(event, {k: v for k, v in data.items() if v is not None})
        session.add(event)
        await session.flush()
        logger.info("Created timeline event %s on property %s", event.id, property_id)
        return event_to_dict(event)


async def update_event(event_id: str, data: dict[str, Any], user_id: str) -> Optional[dict]:
    """
    Update an event the user owns; None when missing or not theirs.

    Completing or re-opening an agreement task also updates the
    agreement's check item.
    """
    async with get_db_session() as session:
        event = await session.get(TimelineEvent, event_id)
        if event is None or event.user_id != user_id:
            return None

        _apply_fields(event, data)

        if (
            event.event_type == TimelineEventType.agreement_task.value
            and "is_completed" in data
            and data["is_completed"] is not None
        ):
            await sync_agreement_item(session, event, bool(data["is_completed"]), user_id)

        await session.flush()
        await session.refresh(event)
        return event_to_dict(event)


async def delete_event(event_id: str, user_id: str) -> bool:
    async with get_db_session() as session:
        event = await session.get(TimelineEvent, event_id)
        if event is None or event.user_id != user_id:
            return False
        await session.delete(event)
        logger.info("Deleted timeline event %s", event_id)
        return True


# =============================================================================
# Queries
# =============================================================================

async def get_events_by_property(property_id: str, user_id: str) -> list[dict]:
    """All events of the property, or [] for users without access."""
    async with get_db_session() as session:
        if await find_link(session, property_id, user_id) is None:
            logger.info("User %s has no access to property %s timeline", user_id, property_id)
            return []
        return await _property_view(session, property_id, user_id)


async def get_all_user_events(user_id: str) -> list[dict]:
    """The user's own events across every property they can access."""
    async with get_db_session() as session:
        accessible = select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
        result = await session.execute(
            select(TimelineEvent, Property.name)
            .join(Property, Property.id == TimelineEvent.property_id)
            .where(
                TimelineEvent.user_id == user_id,
                TimelineEvent.property_id.in_(accessible),
            )
            .order_by(TimelineEvent.start_date)
        )
        return [event_to_dict(event, name) for event, name in result.all()]


def should_notify(event: TimelineEvent, today: date) -> bool:
    """
    Whether an upcoming event is due a reminder today.

    Events happening today always are; others need notification_days_before
    and today inside that window.
    """
    if event.is_completed:
        return False
    event_day = to_utc(event.start_date).date()
    if event_day == today:
        return True
    if event.notification_days_before is None:
        return False
    notify_from = event_day - timedelta(days=event.notification_days_before)
    return notify_from <= today <= event_day


async def get_upcoming_events(user_id: str, days: int = 30) -> list[dict]:
    """The user's events in the next `days` days that are due a reminder."""
    today = utc_today()
    async with get_db_session() as session:
        result = await session.execute(
            select(TimelineEvent, Property.name)
            .outerjoin(Property, Property.id == TimelineEvent.property_id)
            .where(
                TimelineEvent.user_id == user_id,
                TimelineEvent.start_date >= start_of_day(today),
                TimelineEvent.start_date < start_of_day(today + timedelta(days=days + 1)),
            )
            .order_by(TimelineEvent.start_date)
        )
        return [
            event_to_dict(event, name)
            for event, name in result.all()
            if should_notify(event, today)
        ]


# =============================================================================
# Sync
# =============================================================================

async def sync_property_timeline(
    property_id: str,
    user_id: str,
    options: Optional[TimelineSyncOptions] = None,
) -> list[dict]:
    """
    Generate timeline events for a property from its attributes.

    Returns the property's events afterwards. With clear_all_events every
    event of the property is deleted and nothing is generated.
    """
    options = options or TimelineSyncOptions()

    async with get_db_session() as session:
        if await find_link(session, property_id, user_id) is None:
            raise PermissionDenied("You do not have access to this property")

        prop = await session.get(Property, property_id)
        if prop is None:
            raise NotFound("Property not found")

        if options.clear_all_events:
            await session.execute(delete(TimelineEvent).where(TimelineEvent.property_id == property_id))
            logger.info("Cleared all timeline events of property %s", property_id)
            return []

        facts = LeaseFacts.from_property(prop, options.start_date)
        created = 0

        if options.auto_generate_lease_events is not False and facts.lease_start and facts.lease_end:
            created += await generators.generate_lease_events(session, facts, user_id)

        if options.auto_generate_rent_due_dates is not False and facts.lease_start and facts.rent_amount:
            created += await generators.generate_rent_due_dates(session, facts, user_id, options)

        if options.include_inspections:
            created += await generators.generate_inspection_events(
                session, facts, user_id, options.inspection_frequency
            )
        if options.include_maintenance_reminders:
            created += await generators.generate_maintenance_reminders(session, facts, user_id)
        if options.include_property_taxes:
            created += await generators.generate_property_tax_events(session, facts, user_id)
        if options.include_insurance:
            created += await generators.generate_insurance_events(session, facts, user_id)

        logger.info("Timeline sync for property %s created %d events", property_id, created)
        return await _property_view(session, property_id, user_id)
