"""
Supabase client singleton.

Used for auth token validation, sign-up/sign-in and object storage.
Keys are never logged.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from renthive.core.config import get_settings

logger = logging.getLogger(__name__)

_supabase_client: Optional[Client] = None


def init_supabase() -> Optional[Client]:
    """
    Initialize a singleton Supabase client.

    Prefers the service role key; falls back to the anon key.
    """
    global _supabase_client

    if _supabase_client is not None:
        return _supabase_client

    settings = get_settings()
    if not settings.supabase_url:
        logger.error("SUPABASE_URL is not set.")
        return None

    if not settings.supabase_key:
        logger.error(
            "Supabase key is not set. "
            "Set SUPABASE_SERVICE_ROLE_KEY (recommended) "
            "or SUPABASE_ANON_KEY as a fallback."
        )
        return None

    logger.info("Initializing Supabase client.")
    _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


def get_supabase() -> Client:
    """
    Get the Supabase client.

    Raises ExternalServiceError when Supabase is not configured.
    """
    from renthive.core.errors import ExternalServiceError

    client = init_supabase()
    if client is None:
        raise ExternalServiceError("Supabase is not configured")
    return client


def reset_supabase() -> None:
    """Drop the cached client (settings changed, tests)."""
    global _supabase_client
    _supabase_client = None
