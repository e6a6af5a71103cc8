"""
Auth Router
Email/password sign-up and sign-in through Supabase Auth.

The frontend keeps the returned access token and sends it as a bearer
token on every other request.
"""

import asyncio
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from renthive.core.config import get_settings
from renthive.core.errors import AuthenticationFailed, ValidationFailed
from renthive.core.rate_limit import limiter
from renthive.core.security import CurrentUser, require_user, user_from_supabase
from renthive.core.supabase import get_supabase
from renthive.services.profile_service import ensure_profile, get_profile, profile_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


# =============================================================================
# Helper Functions
# =============================================================================

def _session_to_dict(session: Any) -> Optional[dict]:
    if session is None:
        return None
    return {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "expires_at": session.expires_at,
    }


def _user_to_dict(user: CurrentUser) -> dict:
    return {"id": user.id, "email": user.email, "display_name": user.display_name}


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(lambda: get_settings().auth_rate_limit)
async def register(request: Request, body: RegisterRequest):
    """Create a Supabase account and its profile."""
    if not body.email or not body.password:
        raise ValidationFailed("Email and password are required")

    credentials: dict[str, Any] = {"email": body.email, "password": body.password}
    if body.display_name:
        credentials["options"] = {"data": {"display_name": body.display_name}}

    try:
        response = await asyncio.to_thread(get_supabase().auth.sign_up, credentials)
    except Exception as e:
        # supabase-py raises AuthApiError for duplicate emails, weak passwords
        logger.info("Sign-up rejected for %s: %s", body.email, e)
        raise ValidationFailed(f"Registration failed: {e}")

    if response.user is None:
        raise ValidationFailed("Registration failed")

    user = user_from_supabase(response.user)
    await ensure_profile(user)
    logger.info("Registered user %s", user.id)
    return {
        "success": True,
        "message": "Registration successful",
        "data": {"user": _user_to_dict(user), "session": _session_to_dict(response.session)},
    }


@router.post("/login")
@limiter.limit(lambda: get_settings().auth_rate_limit)
async def login(request: Request, body: LoginRequest):
    if not body.email or not body.password:
        raise ValidationFailed("Email and password are required")

    try:
        response = await asyncio.to_thread(
            get_supabase().auth.sign_in_with_password,
            {"email": body.email, "password": body.password},
        )
    except Exception as e:
        logger.info("Sign-in rejected for %s: %s", body.email, e)
        raise AuthenticationFailed("Invalid email or password")

    if response.user is None or response.session is None:
        raise AuthenticationFailed("Invalid email or password")

    user = user_from_supabase(response.user)
    await ensure_profile(user)
    return {
        "success": True,
        "data": {"user": _user_to_dict(user), "session": _session_to_dict(response.session)},
    }


@router.post("/logout")
async def logout(user: CurrentUser = Depends(require_user)):
    """Tokens are stateless here; the client discards its session."""
    logger.info("User %s logged out", user.id)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def me(user: CurrentUser = Depends(require_user)):
    profile = await get_profile(user.id)
    data = profile_to_dict(profile) if profile else _user_to_dict(user)
    return {"success": True, "data": data}
