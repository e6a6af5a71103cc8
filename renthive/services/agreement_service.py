"""
RentHive - Agreement Service
Shared checklists for a property. Check items can be assigned to a member,
which puts a task on that member's timeline.
"""

import logging
from typing import Any, Optional

from sqlalchemy import delete, select

from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, PermissionDenied, ValidationFailed
from renthive.core.utc import parse_date, start_of_day, utc_now_iso, utc_today
from renthive.models.models import (
    Agreement,
    Property,
    PropertyUser,
    TimelineEvent,
    TimelineEventType,
)
from renthive.services.property_user_service import find_link

logger = logging.getLogger(__name__)

TASK_ACTIONS = ("assign", "unassign", "complete")


# =============================================================================
# Helper Functions
# =============================================================================

def normalize_check_item(item: Any) -> dict:
    """A check item with every key present; bare strings become unchecked items."""
    if isinstance(item, str):
        item = {"text": item}
    if not isinstance(item, dict) or not str(item.get("text") or "").strip():
        raise ValidationFailed("Each check item needs text")
    return {
        "text": str(item["text"]).strip(),
        "checked": bool(item.get("checked", False)),
        "assigned_to": item.get("assigned_to"),
        "completed_by": item.get("completed_by"),
        "completed_at": item.get("completed_at"),
    }


def _due_date(value: Any):
    if value in (None, ""):
        return None
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationFailed(f"Invalid due date: {value}")


def agreement_to_dict(agreement: Agreement, prop: Optional[Property] = None) -> dict:
    data = {
        "id": agreement.id,
        "title": agreement.title,
        "property_id": agreement.property_id,
        "created_by": agreement.created_by,
        "due_date": agreement.due_date.isoformat() if agreement.due_date else None,
        "check_items": agreement.check_items or [],
        "created_at": agreement.created_at.isoformat() if agreement.created_at else None,
        "updated_at": agreement.updated_at.isoformat() if agreement.updated_at else None,
    }
    if prop is not None:
        address = ", ".join(
            part for part in (prop.address_line1, prop.address_line2, prop.city, prop.postcode) if part
        )
        data["property"] = {"id": prop.id, "name": prop.name, "address": address}
    return data


def _task_event_filter(agreement_id: str, item_index: Optional[int] = None):
    # JSON path comparisons differ between SQLite and Postgres; match in Python
    def matches(event: TimelineEvent) -> bool:
        metadata = event.event_metadata or {}
        if metadata.get("agreement_id") != agreement_id:
            return False
        return item_index is None or metadata.get("item_index") == item_index
    return matches


async def _task_events(session, agreement: Agreement, item_index: Optional[int] = None) -> list[TimelineEvent]:
    result = await session.execute(
        select(TimelineEvent).where(
            TimelineEvent.property_id == agreement.property_id,
            TimelineEvent.event_type == TimelineEventType.agreement_task.value,
        )
    )
    matches = _task_event_filter(agreement.id, item_index)
    return [event for event in result.scalars().all() if matches(event)]


# =============================================================================
# CRUD
# =============================================================================

async def list_agreements(user_id: str, property_id: Optional[str] = None) -> list[dict]:
    """Agreements on properties the user is linked to, newest first."""
    async with get_db_session() as session:
        accessible = select(PropertyUser.property_id).where(PropertyUser.user_id == user_id)
        query = select(Agreement).where(Agreement.property_id.in_(accessible))
        if property_id:
            query = query.where(Agreement.property_id == property_id)
        result = await session.execute(query.order_by(Agreement.created_at.desc()))
        return [agreement_to_dict(a) for a in result.scalars().all()]


async def get_agreement(agreement_id: str, user_id: str) -> dict:
    async with get_db_session() as session:
        agreement = await session.get(Agreement, agreement_id)
        if agreement is None or await find_link(session, agreement.property_id, user_id) is None:
            raise NotFound("Agreement not found")
        prop = await session.get(Property, agreement.property_id)
        return agreement_to_dict(agreement, prop)


async def create_agreement(user_id: str, data: dict[str, Any]) -> dict:
    title = (data.get("title") or "").strip()
    property_id = data.get("propertyId") or data.get("property_id")
    check_items = data.get("checkItems", data.get("check_items"))
    if not title or not property_id or not isinstance(check_items, list):
        raise ValidationFailed("Title, propertyId and checkItems are required")

    async with get_db_session() as session:
        if await find_link(session, property_id, user_id) is None:
            raise PermissionDenied("You do not have permission to create agreements for this property")

        agreement = Agreement(
            title=title,
            property_id=property_id,
            created_by=user_id,
            due_date=_due_date(data.get("dueDate", data.get("due_date"))),
            check_items=[normalize_check_item(item) for item in check_items],
        )
        session.add(agreement)
        await session.flush()
        logger.info("Created agreement %s on property %s", agreement.id, property_id)
        return agreement_to_dict(agreement)


async def update_agreement(agreement_id: str, user_id: str, data: dict[str, Any]) -> dict:
    """Creator-only update of title, check items and due date."""
    async with get_db_session() as session:
        agreement = await session.get(Agreement, agreement_id)
        if agreement is None:
            raise NotFound("Agreement not found")
        if agreement.created_by != user_id:
            raise PermissionDenied("You do not have permission to update this agreement")

        if data.get("title") is not None:
            if not str(data["title"]).strip():
                raise ValidationFailed("Title cannot be empty")
            agreement.title = str(data["title"]).strip()

        check_items = data.get("checkItems", data.get("check_items"))
        if check_items is not None:
            if not isinstance(check_items, list):
                raise ValidationFailed("checkItems must be a list")
            agreement.check_items = [normalize_check_item(item) for item in check_items]

        if "dueDate" in data or "due_date" in data:
            agreement.due_date = _due_date(data.get("dueDate", data.get("due_date")))

        await session.flush()
        await session.refresh(agreement)
        return agreement_to_dict(agreement)


async def delete_agreement(agreement_id: str, user_id: str) -> None:
    """Creator-only delete; the agreement's task events go with it."""
    async with get_db_session() as session:
        agreement = await session.get(Agreement, agreement_id)
        if agreement is None:
            raise NotFound("Agreement not found")
        if agreement.created_by != user_id:
            raise PermissionDenied("You do not have permission to delete this agreement")

        events = await _task_events(session, agreement)
        if events:
            await session.execute(delete(TimelineEvent).where(TimelineEvent.id.in_([e.id for e in events])))
        await session.delete(agreement)
        logger.info("Deleted agreement %s and %d task events", agreement_id, len(events))


# =============================================================================
# Task assignment
# =============================================================================

async def update_agreement_task(
    agreement_id: str,
    task_index: int,
    action: str,
    user_id: str,
    target_user_id: Optional[str] = None,
) -> dict:
    """
    Assign, unassign or complete one check item.

    assign      -> item.assigned_to = target (default: caller), task event for the assignee
    unassign    -> item.assigned_to cleared, task events of the item removed
    complete    -> item.checked toggled, mirrored onto the item's task events
    """
    if action not in TASK_ACTIONS:
        raise ValidationFailed(f"Invalid action. Must be one of: {', '.join(TASK_ACTIONS)}")

    async with get_db_session() as session:
        agreement = await session.get(Agreement, agreement_id)
        if agreement is None:
            raise NotFound("Agreement not found")
        if await find_link(session, agreement.property_id, user_id) is None:
            raise PermissionDenied("You do not have permission to update this agreement")

        items = [dict(item) for item in agreement.check_items or []]
        if not isinstance(task_index, int) or not 0 <= task_index < len(items):
            raise ValidationFailed("Invalid task index")
        item = items[task_index]

        if action == "assign":
            assignee = target_user_id or user_id
            if await find_link(session, agreement.property_id, assignee) is None:
                raise ValidationFailed("Assignee does not have access to this property")

            for event in await _task_events(session, agreement, task_index):
                await session.delete(event)
            item["assigned_to"] = assignee
            due = agreement.due_date or utc_today()
            session.add(TimelineEvent(
                property_id=agreement.property_id,
                user_id=assignee,
                title=item["text"],
                description=f"Task from agreement: {agreement.title}",
                event_type=TimelineEventType.agreement_task.value,
                start_date=start_of_day(due),
                is_all_day=True,
                notification_days_before=1,
                is_completed=bool(item.get("checked")),
                event_metadata={"agreement_id": agreement.id, "item_index": task_index},
            ))

        elif action == "unassign":
            item["assigned_to"] = None
            for event in await _task_events(session, agreement, task_index):
                await session.delete(event)

        else:
            completed = not bool(item.get("checked"))
            item["checked"] = completed
            if completed:
                item["completed_by"] = user_id
                item["completed_at"] = utc_now_iso()
            else:
                item.pop("completed_by", None)
                item.pop("completed_at", None)
            for event in await _task_events(session, agreement, task_index):
                event.is_completed = completed

        agreement.check_items = items
        await session.flush()
        await session.refresh(agreement)
        logger.info("Agreement %s item %d: %s by %s", agreement_id, task_index, action, user_id)
        return agreement_to_dict(agreement)
