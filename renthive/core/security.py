"""
RentHive Security Module
Bearer-token authentication backed by Supabase Auth.

Every protected route depends on require_user; the token is validated
with Supabase and the caller's profile row is created on first sight.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from renthive.core.errors import AuthenticationFailed
from renthive.core.supabase import get_supabase

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    """Authenticated caller, as reported by Supabase Auth."""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @property
    def sender_name(self) -> str:
        """Name used when emailing on the user's behalf."""
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@")[0]
        return "Tenant"


def user_from_supabase(auth_user: Any) -> CurrentUser:
    """Build a CurrentUser from a supabase-py User object."""
    metadata = getattr(auth_user, "user_metadata", None) or {}
    return CurrentUser(
        id=str(auth_user.id),
        email=getattr(auth_user, "email", None),
        display_name=metadata.get("display_name") or metadata.get("full_name"),
        avatar_url=metadata.get("avatar_url"),
    )


async def verify_access_token(token: str) -> Optional[CurrentUser]:
    """
    Validate an access token with Supabase.

    Returns None for invalid or expired tokens.
    """
    client = get_supabase()
    try:
        response = await asyncio.to_thread(client.auth.get_user, token)
    except Exception as e:
        # supabase-py raises AuthApiError for rejected tokens
        logger.info("Token rejected by Supabase: %s", e)
        return None

    if response is None or response.user is None:
        return None
    return user_from_supabase(response.user)


security_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_bearer),
) -> CurrentUser:
    """
    Require an authenticated user.

    Authentication source: Authorization: Bearer <supabase access token>
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed("Authentication token is required")

    user = await verify_access_token(credentials.credentials)
    if user is None:
        raise AuthenticationFailed("Invalid or expired authentication token")

    from renthive.services.profile_service import ensure_profile
    await ensure_profile(user)
    return user


# Alias used by routers
require_user = get_current_user
