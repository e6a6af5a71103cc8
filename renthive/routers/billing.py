"""
Billing Router
Stripe plans, checkout, customer portal, usage limits and webhooks.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ConfigDict, Field

from renthive.core.errors import PermissionDenied
from renthive.core.security import CurrentUser, require_user
from renthive.services import billing_service, usage

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckoutRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    price_id: Optional[str] = Field(None, alias="priceId")


class PortalRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    return_url: Optional[str] = Field(None, alias="returnUrl")


class UserRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")


class FeatureRequest(CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    feature: Optional[str] = Field(None, description="e.g. files, summaries")


# =============================================================================
# Helper Functions
# =============================================================================

def _own_user_id(requested: Optional[str], user: CurrentUser) -> Optional[str]:
    """The requested user id, which must be the caller's when given."""
    if requested and requested != user.id:
        raise PermissionDenied("You can only manage your own subscription")
    return requested


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/plans")
async def list_plans():
    return {"success": True, "data": await billing_service.get_plans()}


@router.get("/subscriptions/user/{user_id}")
async def get_subscription(user_id: str, user: CurrentUser = Depends(require_user)):
    _own_user_id(user_id, user)
    return {"success": True, "data": await billing_service.get_user_subscription(user_id)}


@router.post("/create-checkout")
async def create_checkout(body: CheckoutRequest, user: CurrentUser = Depends(require_user)):
    user_id = _own_user_id(body.user_id, user) or user.id
    return {"success": True, "data": await billing_service.create_checkout_session(user_id, body.price_id)}


@router.post("/create-portal-session")
async def create_portal_session(body: PortalRequest, user: CurrentUser = Depends(require_user)):
    user_id = _own_user_id(body.user_id, user) or user.id
    return {"success": True, "data": await billing_service.create_portal_session(user_id, body.return_url)}


@router.post("/sync-plans")
async def sync_plans(user: CurrentUser = Depends(require_user)):
    """Refresh plans from the active Stripe products."""
    return {"success": True, "data": await billing_service.sync_stripe_plans()}


@router.post("/cancel-subscription")
async def cancel_subscription(body: UserRequest, user: CurrentUser = Depends(require_user)):
    user_id = _own_user_id(body.user_id, user) or user.id
    return {"success": True, "data": await billing_service.cancel_subscription(user_id)}


@router.post("/check-limits")
async def check_limits(body: FeatureRequest, user: CurrentUser = Depends(require_user)):
    user_id = _own_user_id(body.user_id, user) or user.id
    return {"success": True, "data": await usage.check_feature_limits(user_id, body.feature)}


@router.post("/increment-usage")
async def increment_usage(body: FeatureRequest, user: CurrentUser = Depends(require_user)):
    user_id = _own_user_id(body.user_id, user) or user.id
    return {"success": True, "data": await usage.increment_feature_usage(user_id, body.feature)}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """Stripe calls this; authenticated by the signature header, not a token."""
    payload = await request.body()
    event = billing_service.construct_event(payload, stripe_signature)
    await billing_service.handle_webhook_event(event)
    return {"received": True}
