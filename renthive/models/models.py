"""
RentHive Database Models
SQLAlchemy ORM models for all entities.

All datetime columns use DateTime(timezone=True) for proper UTC handling.
Use utc_now() from renthive.core.utc for all timestamp defaults.
"""

import enum
import uuid
from datetime import date, datetime
from typing import Any, Optional
from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from renthive.core.database import Base
from renthive.core.utc import utc_now


# Type alias for timezone-aware DateTime columns
DateTimeTZ = DateTime(timezone=True)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Enums
# =============================================================================

class PropertyRole(str, enum.Enum):
    """Role a user holds on a property."""
    owner = "owner"
    tenant = "tenant"


class TimelineEventType(str, enum.Enum):
    lease_start = "lease_start"
    lease_end = "lease_end"
    rent_due = "rent_due"
    inspection = "inspection"
    maintenance = "maintenance"
    agreement_task = "agreement_task"
    other = "other"


class RecurrenceType(str, enum.Enum):
    none = "none"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class InvitationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"


# =============================================================================
# Profiles (mirrors Supabase auth users)
# =============================================================================

class Profile(Base):
    """
    Public profile for an authenticated Supabase user.

    The id is the Supabase auth user id. Rows are created the first time a
    token for the user is seen, or at registration.
    """
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Billing
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    subscription_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    usage: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)  # feature -> count

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


# =============================================================================
# Properties
# =============================================================================

class Property(Base):
    """A rental property. user_id is the owner who created it."""
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), index=True)

    name: Mapped[str] = mapped_column(String(255))
    emoji: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Address
    address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postcode: Mapped[str] = mapped_column(String(20))
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    property_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    landlord_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Lease
    rent_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deposit_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    lease_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    lease_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Free-form details: rent_due_day, currency, bedrooms, ...
    property_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


class PropertyUser(Base):
    """Access link between a user and a property, with the user's role."""
    __tablename__ = "property_users"
    __table_args__ = (UniqueConstraint("property_id", "user_id", name="uq_property_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    user_role: Mapped[str] = mapped_column(String(20), default=PropertyRole.tenant.value)

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


class PropertyInvitation(Base):
    """Pending email invitation to join a property."""
    __tablename__ = "property_invitations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    email: Mapped[str] = mapped_column(String(255), index=True)
    role: Mapped[str] = mapped_column(String(20), default=PropertyRole.tenant.value)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default=InvitationStatus.pending.value)
    invited_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTimeTZ)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


# =============================================================================
# Timeline
# =============================================================================

class TimelineEvent(Base):
    """
    Calendar-like event attached to a property.

    Events belong to the user who created (or generated) them; other
    members of the property see them read-only.
    """
    __tablename__ = "timeline_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)

    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_type: Mapped[str] = mapped_column(String(30), default=TimelineEventType.other.value, index=True)

    start_date: Mapped[datetime] = mapped_column(DateTimeTZ, index=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False)

    recurrence_type: Mapped[str] = mapped_column(String(20), default=RecurrenceType.none.value)
    recurrence_end_date: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)

    notification_days_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


# =============================================================================
# Agreements
# =============================================================================

class Agreement(Base):
    """Checklist agreed between the members of a property."""
    __tablename__ = "agreements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255))
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    created_by: Mapped[str] = mapped_column(String(36), index=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # [{text, checked, assigned_to, completed_by, completed_at}, ...]
    check_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


# =============================================================================
# Media
# =============================================================================

class PropertyImage(Base):
    """Image or video uploaded for a room of a property."""
    __tablename__ = "property_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    original_uploader_id: Mapped[str] = mapped_column(String(36))
    path: Mapped[str] = mapped_column(String(500), index=True)
    filename: Mapped[str] = mapped_column(String(255))
    room_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


# =============================================================================
# Landlord Requests
# =============================================================================

class _LandlordRequestMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(String(36), ForeignKey("properties.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    message: Mapped[str] = mapped_column(Text)
    image_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), default="sent")
    email_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class RepairRequest(_LandlordRequestMixin, Base):
    __tablename__ = "repair_requests"


class DepositRequest(_LandlordRequestMixin, Base):
    __tablename__ = "deposit_requests"


# =============================================================================
# Billing
# =============================================================================

class Plan(Base):
    """Subscription plan mirrored from a Stripe product's default price."""
    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100))
    stripe_price_id: Mapped[str] = mapped_column(String(100), unique=True)
    amount: Mapped[int] = mapped_column(Integer, default=0)  # minor units
    currency: Mapped[str] = mapped_column(String(10), default="usd")
    interval: Mapped[str] = mapped_column(String(20), default="month")
    features: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    plan_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("plans.id"), nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(30), default="active")
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)

    plan: Mapped[Optional["Plan"]] = relationship(lazy="joined")


# =============================================================================
# Contract Analysis
# =============================================================================

class ContractSummary(Base):
    """Stored result of an AI contract analysis."""
    __tablename__ = "contract_summaries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    summary: Mapped[dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
