"""
RentHive - Billing Service
Stripe subscriptions: plan sync, checkout, customer portal, cancellation
and webhook processing. Stripe's SDK is blocking, so calls run in a thread.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import stripe
from sqlalchemy import select

from renthive.core.config import get_settings
from renthive.core.database import get_db_session
from renthive.core.errors import ExternalServiceError, NotFound, ValidationFailed
from renthive.models.models import Plan, Profile, Subscription
from renthive.services.usage import FREE_PLAN_FEATURES, FREE_PLAN_NAME

logger = logging.getLogger(__name__)

FREE_PRICE_ID = "price_free"
HANDLED_EVENTS = (
    "checkout.session.completed",
    "invoice.paid",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


# =============================================================================
# Helper Functions
# =============================================================================

def _configure_stripe() -> None:
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise ExternalServiceError("Stripe is not configured")
    stripe.api_key = settings.stripe_secret_key


async def _call(func, *args, **kwargs):
    """Run a Stripe SDK call off the event loop, mapping its errors."""
    _configure_stripe()
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except stripe.StripeError as e:
        logger.error("Stripe call %s failed: %s", getattr(func, "__qualname__", func), e)
        raise ExternalServiceError(f"Stripe error: {e.user_message or e}") from e


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _period_end(subscription: Any) -> Optional[datetime]:
    timestamp = _field(subscription, "current_period_end")
    if timestamp is None:
        # Newer API versions moved the period onto the subscription items
        items = _field(_field(subscription, "items"), "data") or []
        timestamp = _field(items[0], "current_period_end") if items else None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc) if timestamp else None


def billing_url(query: str = "") -> str:
    return f"{get_settings().frontend_url.rstrip('/')}/dashboard/settings/billing{query}"


def plan_to_dict(plan: Plan) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "stripe_price_id": plan.stripe_price_id,
        "amount": plan.amount,
        "currency": plan.currency,
        "interval": plan.interval,
        "features": plan.features or {},
        "created_at": plan.created_at.isoformat() if plan.created_at else None,
    }


def subscription_to_dict(subscription: Subscription) -> dict:
    return {
        "id": subscription.id,
        "user_id": subscription.user_id,
        "plan_id": subscription.plan_id,
        "stripe_subscription_id": subscription.stripe_subscription_id,
        "stripe_customer_id": subscription.stripe_customer_id,
        "status": subscription.status,
        "current_period_end": (
            subscription.current_period_end.isoformat() if subscription.current_period_end else None
        ),
        "plan": plan_to_dict(subscription.plan) if subscription.plan else None,
    }


def _parse_features(raw: Any) -> dict:
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        features = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparsable plan features: %r", raw)
        return {}
    return features if isinstance(features, dict) else {}


async def _subscription_for(session, user_id: str) -> Optional[Subscription]:
    result = await session.execute(select(Subscription).where(Subscription.user_id == user_id))
    return result.unique().scalar_one_or_none()


# =============================================================================
# Plans
# =============================================================================

async def sync_stripe_plans() -> list[dict]:
    """
    Mirror active Stripe products into plans, keyed by default price.

    A Free plan is added when Stripe has no zero-priced product.
    """
    products = await _call(stripe.Product.list, active=True, expand=["data.default_price"])
    free_exists = False

    async with get_db_session() as session:
        for product in _field(products, "data") or []:
            price = _field(product, "default_price")
            if not price or isinstance(price, str):
                logger.info("Product %s has no expanded default price, skipping", _field(product, "id"))
                continue

            amount = _field(price, "unit_amount") or 0
            if amount == 0:
                free_exists = True

            values = {
                "name": _field(product, "name"),
                "amount": amount,
                "currency": _field(price, "currency") or "usd",
                "interval": _field(_field(price, "recurring"), "interval") or "month",
                "features": _parse_features(_field(_field(product, "metadata"), "features")),
            }
            result = await session.execute(select(Plan).where(Plan.stripe_price_id == _field(price, "id")))
            plan = result.scalar_one_or_none()
            if plan is None:
                session.add(Plan(stripe_price_id=_field(price, "id"), **values))
                logger.info("Created plan %s", values["name"])
            else:
                for key, value in values.items():
                    setattr(plan, key, value)
                logger.info("Updated plan %s", values["name"])

        if not free_exists:
            result = await session.execute(select(Plan).where(Plan.name == FREE_PLAN_NAME, Plan.amount == 0))
            if result.scalars().first() is None:
                session.add(Plan(
                    name=FREE_PLAN_NAME,
                    stripe_price_id=FREE_PRICE_ID,
                    amount=0,
                    currency="usd",
                    interval="month",
                    features=dict(FREE_PLAN_FEATURES),
                ))
                logger.info("Created free plan")

    return await get_plans()


async def get_plans() -> list[dict]:
    async with get_db_session() as session:
        result = await session.execute(select(Plan).order_by(Plan.amount))
        return [plan_to_dict(plan) for plan in result.scalars().all()]


async def get_user_subscription(user_id: str) -> dict:
    """The user's subscription, or an active Free plan when there is none."""
    async with get_db_session() as session:
        subscription = await _subscription_for(session, user_id)
        if subscription is not None:
            return subscription_to_dict(subscription)

        result = await session.execute(select(Plan).where(Plan.name == FREE_PLAN_NAME))
        free = result.scalars().first()
        return {"status": "active", "plan": plan_to_dict(free) if free else None}


# =============================================================================
# Checkout, portal, cancellation
# =============================================================================

async def create_checkout_session(user_id: Optional[str], price_id: Optional[str]) -> dict:
    if not user_id or not price_id:
        raise ValidationFailed("Missing required parameters")

    async with get_db_session() as session:
        profile = await session.get(Profile, user_id)
        if profile is None:
            raise NotFound("User not found")
        subscription = await _subscription_for(session, user_id)
        customer_id = (subscription.stripe_customer_id if subscription else None) or profile.stripe_customer_id
        email, name = profile.email, profile.display_name or profile.email

    if not customer_id:
        customer = await _call(stripe.Customer.create, email=email, name=name, metadata={"userId": user_id})
        customer_id = _field(customer, "id")
        async with get_db_session() as session:
            profile = await session.get(Profile, user_id)
            profile.stripe_customer_id = customer_id
        logger.info("Created Stripe customer for user %s", user_id)

    checkout = await _call(
        stripe.checkout.Session.create,
        customer=customer_id,
        line_items=[{"price": price_id, "quantity": 1}],
        mode="subscription",
        success_url=billing_url("?success=true"),
        cancel_url=billing_url("?canceled=true"),
        metadata={"userId": user_id},
    )
    return {"sessionId": _field(checkout, "id")}


async def create_portal_session(user_id: str, return_url: Optional[str] = None) -> dict:
    async with get_db_session() as session:
        subscription = await _subscription_for(session, user_id)
        customer_id = subscription.stripe_customer_id if subscription else None
    if not customer_id:
        raise NotFound("No subscription found for this user")

    portal = await _call(
        stripe.billing_portal.Session.create,
        customer=customer_id,
        return_url=return_url or billing_url(),
    )
    return {"url": _field(portal, "url")}


async def cancel_subscription(user_id: Optional[str]) -> dict:
    """Cancel at the end of the current billing period."""
    if not user_id:
        raise ValidationFailed("Missing required parameters")
    async with get_db_session() as session:
        subscription = await _subscription_for(session, user_id)
        stripe_subscription_id = subscription.stripe_subscription_id if subscription else None
    if not stripe_subscription_id:
        raise NotFound("No active subscription found")

    await _call(stripe.Subscription.modify, stripe_subscription_id, cancel_at_period_end=True)
    logger.info("Subscription %s set to cancel at period end", stripe_subscription_id)
    return {"message": "Subscription will be canceled at the end of the billing period"}


# =============================================================================
# Webhooks
# =============================================================================

def construct_event(payload: bytes, signature: Optional[str]) -> Any:
    """Verify a webhook payload; ValidationFailed on a missing or bad signature."""
    if not signature:
        raise ValidationFailed("Missing Stripe signature")
    try:
        return stripe.Webhook.construct_event(payload, signature, get_settings().stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise ValidationFailed(f"Webhook Error: {e}") from e


async def handle_webhook_event(event: Any) -> None:
    event_type = _field(event, "type")
    obj = _field(_field(event, "data"), "object")

    if event_type == "checkout.session.completed":
        await _checkout_completed(obj)
    elif event_type == "invoice.paid":
        subscription_id = _field(obj, "subscription")
        if subscription_id:
            stripe_sub = await _call(stripe.Subscription.retrieve, subscription_id)
            await _update_subscription_status(subscription_id, stripe_sub)
    elif event_type in ("customer.subscription.updated", "customer.subscription.deleted"):
        await _update_subscription_status(_field(obj, "id"), obj)
    else:
        logger.info("Unhandled Stripe event type: %s", event_type)


async def _checkout_completed(checkout: Any) -> None:
    user_id = _field(_field(checkout, "metadata"), "userId")
    if not user_id:
        logger.error("Checkout session %s has no userId metadata", _field(checkout, "id"))
        return

    line_items = await _call(stripe.checkout.Session.list_line_items, _field(checkout, "id"))
    items = _field(line_items, "data") or []
    price_id = _field(_field(items[0], "price"), "id") if items else None
    if not price_id:
        logger.error("Checkout session %s has no price", _field(checkout, "id"))
        return

    subscription_id = _field(checkout, "subscription")
    customer_id = _field(checkout, "customer")
    stripe_sub = await _call(stripe.Subscription.retrieve, subscription_id)

    async with get_db_session() as session:
        result = await session.execute(select(Plan).where(Plan.stripe_price_id == price_id))
        plan = result.scalar_one_or_none()
        if plan is None:
            raise NotFound(f"No plan for price {price_id}")

        subscription = await _subscription_for(session, user_id)
        if subscription is None:
            subscription = Subscription(user_id=user_id)
            session.add(subscription)
        subscription.plan_id = plan.id
        subscription.stripe_subscription_id = subscription_id
        subscription.stripe_customer_id = customer_id
        subscription.status = _field(stripe_sub, "status") or "active"
        subscription.current_period_end = _period_end(stripe_sub)
        await session.flush()

        profile = await session.get(Profile, user_id)
        if profile is not None:
            profile.subscription_id = subscription.id
            profile.stripe_customer_id = customer_id
        logger.info("User %s subscribed to %s", user_id, plan.name)


async def _update_subscription_status(stripe_subscription_id: str, stripe_sub: Any) -> None:
    async with get_db_session() as session:
        result = await session.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        subscription = result.unique().scalar_one_or_none()
        if subscription is None:
            logger.info("No local subscription for %s", stripe_subscription_id)
            return
        subscription.status = _field(stripe_sub, "status") or subscription.status
        subscription.current_period_end = _period_end(stripe_sub) or subscription.current_period_end
        logger.info("Subscription %s is now %s", stripe_subscription_id, subscription.status)
