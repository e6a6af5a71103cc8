"""
RentHive - Feature Usage
Per-user counters (stored on the profile) checked against the limits of
the user's plan.
"""

import logging
from typing import Any, Optional

from sqlalchemy import select

from renthive.core.database import get_db_session
from renthive.core.errors import NotFound, ValidationFailed
from renthive.models.models import Plan, Profile, Subscription

logger = logging.getLogger(__name__)

FREE_PLAN_NAME = "Free"
FREE_PLAN_FEATURES = {"files": 5, "summaries": 3}


async def _plan_for(session, user_id: str) -> tuple[str, dict[str, Any]]:
    """(plan name, features) for the user, falling back to the Free plan."""
    result = await session.execute(select(Subscription).where(Subscription.user_id == user_id))
    subscription: Optional[Subscription] = result.unique().scalar_one_or_none()
    if subscription is not None and subscription.plan is not None:
        return subscription.plan.name, subscription.plan.features or {}

    free = await session.execute(select(Plan).where(Plan.name == FREE_PLAN_NAME, Plan.amount == 0))
    plan = free.scalars().first()
    if plan is not None:
        return plan.name, plan.features or {}
    return FREE_PLAN_NAME, dict(FREE_PLAN_FEATURES)


async def check_feature_limits(user_id: str, feature: str) -> dict:
    """
    Whether the user may use a feature once more.

    Returns {allowed, currentUsage, limit, plan}; plans with the
    "unlimited" feature report limit "unlimited". A feature the plan does
    not list is not allowed.
    """
    if not user_id or not feature:
        raise ValidationFailed("Missing required parameters")

    async with get_db_session() as session:
        profile = await session.get(Profile, user_id)
        usage = (profile.usage if profile else None) or {}
        current = int(usage.get(feature, 0))
        plan_name, features = await _plan_for(session, user_id)

    if features.get("unlimited"):
        return {"allowed": True, "currentUsage": current, "limit": "unlimited", "plan": plan_name}

    limit = features.get(feature)
    allowed = isinstance(limit, (int, float)) and current < limit
    return {"allowed": allowed, "currentUsage": current, "limit": limit, "plan": plan_name}


async def increment_feature_usage(user_id: str, feature: str) -> dict:
    if not user_id or not feature:
        raise ValidationFailed("Missing required parameters")

    async with get_db_session() as session:
        profile = await session.get(Profile, user_id)
        if profile is None:
            raise NotFound("User not found")
        usage = dict(profile.usage or {})
        usage[feature] = int(usage.get(feature, 0)) + 1
        profile.usage = usage
        logger.info("Usage of %s for user %s is now %d", feature, user_id, usage[feature])
        return {"feature": feature, "newUsage": usage[feature]}
