"""
RentHive - Timeline Event Generators
Turns property attributes into timeline events (lease dates, rent due dates,
inspections, maintenance, property tax, insurance).

Every generator checks for an existing event of the same user before
inserting, so re-running a sync never creates duplicates. Each user keeps
their own copy of generated events.
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from renthive.core.utc import start_of_day, utc_today
from renthive.models.models import (
    Property,
    RecurrenceType,
    TimelineEvent,
    TimelineEventType,
)

logger = logging.getLogger(__name__)

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€"}
DEFAULT_CURRENCY = "GBP"
MAX_RENT_MONTHS = 120


# =============================================================================
# Inputs
# =============================================================================

class TimelineSyncOptions(BaseModel):
    """Options accepted by a timeline sync (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    auto_generate_rent_due_dates: Optional[bool] = Field(None, alias="autoGenerateRentDueDates")
    auto_generate_lease_events: Optional[bool] = Field(None, alias="autoGenerateLeaseEvents")
    upfront_rent_paid: int = Field(0, ge=0, alias="upfrontRentPaid")
    rent_due_day: Optional[int] = Field(None, ge=1, le=31, alias="rentDueDay")
    clear_all_events: bool = Field(False, alias="clearAllEvents")
    include_inspections: bool = Field(False, alias="includeInspections")
    include_maintenance_reminders: bool = Field(False, alias="includeMaintenanceReminders")
    include_property_taxes: bool = Field(False, alias="includePropertyTaxes")
    include_insurance: bool = Field(False, alias="includeInsurance")
    start_date: Optional[date] = Field(None, alias="startDate")
    inspection_frequency: Literal["quarterly", "biannual", "annual"] = Field("annual", alias="inspectionFrequency")


@dataclass
class LeaseFacts:
    """The property values generation works from, after any startDate override."""
    property_id: str
    name: str
    lease_start: Optional[date]
    lease_end: Optional[date]
    rent_amount: Optional[float]
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or "your property"

    @classmethod
    def from_property(cls, prop: Property, start_override: Optional[date] = None) -> "LeaseFacts":
        """
        Snapshot a property.

        With start_override the lease start moves to that date and, when an
        end date exists, the end moves with it so the lease keeps its length.
        """
        lease_start = prop.lease_start_date
        lease_end = prop.lease_end_date
        if start_override is not None:
            if lease_start is not None and lease_end is not None:
                lease_end = start_override + (lease_end - lease_start)
            lease_start = start_override
        return cls(
            property_id=prop.id,
            name=prop.name,
            lease_start=lease_start,
            lease_end=lease_end,
            rent_amount=prop.rent_amount,
            details=dict(prop.property_details or {}),
        )


# =============================================================================
# Helpers
# =============================================================================

async def _event_exists(session: AsyncSession, *criteria) -> bool:
    result = await session.execute(select(TimelineEvent.id).where(*criteria).limit(1))
    return result.first() is not None


def _add_event(session: AsyncSession, facts: LeaseFacts, user_id: str, **values) -> TimelineEvent:
    values.setdefault("is_all_day", True)
    values.setdefault("recurrence_type", RecurrenceType.none.value)
    event = TimelineEvent(property_id=facts.property_id, user_id=user_id, **values)
    session.add(event)
    return event


def rent_due_on(month: date, day: int) -> date:
    """The due day within month's month, clamped to the month's length."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=min(day, last_day))


def rent_due_dates(
    lease_start: date,
    lease_end: Optional[date],
    rent_due_day: int,
    upfront_months: int = 0,
) -> list[date]:
    """
    Monthly due dates from the first unpaid month through the lease end.

    The first due date is rent_due_day of the lease start month, or of the
    next month when the lease starts after that day. Months paid upfront are
    skipped. Without an end date the lease runs twelve months. At most
    MAX_RENT_MONTHS dates are returned.
    """
    if lease_end is None:
        lease_end = lease_start + relativedelta(months=12)

    first_month = lease_start.replace(day=1)
    offset = upfront_months
    if lease_start.day > rent_due_on(first_month, rent_due_day).day:
        offset += 1

    dates = []
    while len(dates) < MAX_RENT_MONTHS:
        due = rent_due_on(first_month + relativedelta(months=offset), rent_due_day)
        if due > lease_end:
            break
        dates.append(due)
        offset += 1
    return dates


# =============================================================================
# Generators
# =============================================================================

async def generate_lease_events(session: AsyncSession, facts: LeaseFacts, user_id: str) -> int:
    """Lease start and lease end events; past dates are created completed."""
    today = utc_today()
    created = 0
    specs = [
        (TimelineEventType.lease_start, facts.lease_start, "Lease Start Date",
         f"The lease for {facts.name} begins today.", 7),
        (TimelineEventType.lease_end, facts.lease_end, "Lease End Date",
         f"The lease for {facts.name} ends today.", 30),
    ]
    for event_type, day, title, description, notify in specs:
        if day is None:
            continue
        start = start_of_day(day)
        if await _event_exists(
            session,
            TimelineEvent.property_id == facts.property_id,
            TimelineEvent.event_type == event_type.value,
            TimelineEvent.start_date == start,
            TimelineEvent.user_id == user_id,
        ):
            continue
        _add_event(
            session, facts, user_id,
            title=title,
            description=description,
            event_type=event_type.value,
            start_date=start,
            notification_days_before=notify,
            is_completed=day < today,
        )
        created += 1
    return created


async def generate_rent_due_dates(
    session: AsyncSession,
    facts: LeaseFacts,
    user_id: str,
    options: TimelineSyncOptions,
) -> int:
    """One "Rent Payment Due" event per month of the lease."""
    if facts.lease_start is None:
        return 0

    rent_due_day = options.rent_due_day or facts.details.get("rent_due_day") or 1
    try:
        rent_due_day = max(1, min(31, int(rent_due_day)))
    except (TypeError, ValueError):
        rent_due_day = 1

    currency = facts.details.get("currency") or DEFAULT_CURRENCY
    symbol = CURRENCY_SYMBOLS.get(currency, "£")
    amount = facts.rent_amount
    # 1200.0 reads as 1200
    amount_text = str(int(amount)) if isinstance(amount, float) and amount.is_integer() else str(amount)

    created = 0
    for due in rent_due_dates(facts.lease_start, facts.lease_end, rent_due_day, options.upfront_rent_paid):
        start = start_of_day(due)
        if await _event_exists(
            session,
            TimelineEvent.property_id == facts.property_id,
            TimelineEvent.event_type == TimelineEventType.rent_due.value,
            TimelineEvent.start_date == start,
            TimelineEvent.user_id == user_id,
        ):
            continue
        _add_event(
            session, facts, user_id,
            title="Rent Payment Due",
            description=f"Monthly rent payment of {symbol}{amount_text} is due today.",
            event_type=TimelineEventType.rent_due.value,
            start_date=start,
            notification_days_before=3,
            event_metadata={"amount": amount, "currency": currency},
        )
        created += 1

    logger.info("Created %d rent due events for property %s", created, facts.property_id)
    return created


INSPECTION_SCHEDULES = {
    "annual": (RecurrenceType.yearly, "Annual Property Inspection"),
    "quarterly": (RecurrenceType.quarterly, "Quarterly Property Inspection"),
    "biannual": (RecurrenceType.none, "Semi-Annual Property Inspection"),
}


async def generate_inspection_events(
    session: AsyncSession,
    facts: LeaseFacts,
    user_id: str,
    frequency: str = "annual",
) -> int:
    """
    An inspection a year from today.

    Semi-annual inspections have no matching recurrence, so a second
    one-off event is added six months from today.
    """
    recurrence, title = INSPECTION_SCHEDULES.get(frequency, INSPECTION_SCHEDULES["annual"])
    if await _event_exists(
        session,
        TimelineEvent.property_id == facts.property_id,
        TimelineEvent.event_type == TimelineEventType.inspection.value,
        TimelineEvent.user_id == user_id,
        TimelineEvent.title == title,
    ):
        return 0

    today = utc_today()
    dates = [today + relativedelta(years=1)]
    if frequency == "biannual":
        dates.append(today + relativedelta(months=6))

    for day in dates:
        _add_event(
            session, facts, user_id,
            title=title,
            description=f"Schedule an inspection for {facts.display_name}",
            event_type=TimelineEventType.inspection.value,
            start_date=start_of_day(day),
            recurrence_type=recurrence.value,
            notification_days_before=14,
        )
    return len(dates)


async def generate_maintenance_reminders(session: AsyncSession, facts: LeaseFacts, user_id: str) -> int:
    """Quarterly maintenance checks for the coming year."""
    title = "Quarterly Maintenance Check"
    if await _event_exists(
        session,
        TimelineEvent.property_id == facts.property_id,
        TimelineEvent.event_type == TimelineEventType.maintenance.value,
        TimelineEvent.user_id == user_id,
        TimelineEvent.title == title,
    ):
        return 0

    today = utc_today()
    for quarter in range(1, 5):
        _add_event(
            session, facts, user_id,
            title=title,
            description=f"Schedule regular maintenance for {facts.display_name}",
            event_type=TimelineEventType.maintenance.value,
            start_date=start_of_day(today + relativedelta(months=3 * quarter)),
            recurrence_type=RecurrenceType.quarterly.value,
            notification_days_before=7,
        )
    return 4


async def generate_property_tax_events(session: AsyncSession, facts: LeaseFacts, user_id: str) -> int:
    """April 15th, this year or next once it has passed."""
    title = "Property Tax Due"
    if await _event_exists(
        session,
        TimelineEvent.property_id == facts.property_id,
        TimelineEvent.user_id == user_id,
        TimelineEvent.title == title,
    ):
        return 0

    today = utc_today()
    due = date(today.year, 4, 15)
    if today > due:
        due = date(today.year + 1, 4, 15)

    _add_event(
        session, facts, user_id,
        title=title,
        description=f"Property tax payment due for {facts.display_name}",
        event_type=TimelineEventType.other.value,
        start_date=start_of_day(due),
        recurrence_type=RecurrenceType.yearly.value,
        notification_days_before=30,
    )
    return 1


async def generate_insurance_events(session: AsyncSession, facts: LeaseFacts, user_id: str) -> int:
    title = "Insurance Renewal"
    if await _event_exists(
        session,
        TimelineEvent.property_id == facts.property_id,
        TimelineEvent.user_id == user_id,
        TimelineEvent.title == title,
    ):
        return 0

    _add_event(
        session, facts, user_id,
        title=title,
        description=f"Renew insurance for {facts.display_name}",
        event_type=TimelineEventType.other.value,
        start_date=start_of_day(utc_today() + relativedelta(years=1)),
        recurrence_type=RecurrenceType.yearly.value,
        notification_days_before=30,
    )
    return 1
