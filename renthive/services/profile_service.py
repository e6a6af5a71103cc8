"""
RentHive - Profile Service
Local mirror of Supabase auth users (id, email, display name, avatar).
"""

from typing import Optional

from sqlalchemy import func, select

from renthive.core.database import get_db_session
from renthive.core.security import CurrentUser
from renthive.models.models import Profile


def profile_to_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "display_name": profile.display_name,
        "email": profile.email,
        "avatar_url": profile.avatar_url,
    }


async def ensure_profile(user: CurrentUser) -> Profile:
    """Create the caller's profile row, or refresh its email."""
    async with get_db_session() as session:
        profile = await session.get(Profile, user.id)
        if profile is None:
            profile = Profile(
                id=user.id,
                email=user.email,
                display_name=user.display_name,
                avatar_url=user.avatar_url,
                usage={},
            )
            session.add(profile)
        elif user.email and profile.email != user.email:
            profile.email = user.email
        return profile


async def get_profile(user_id: str) -> Optional[Profile]:
    """Get a profile by user id."""
    async with get_db_session() as session:
        return await session.get(Profile, user_id)


async def get_profile_by_email(email: str) -> Optional[Profile]:
    """Case-insensitive lookup by email."""
    async with get_db_session() as session:
        result = await session.execute(
            select(Profile).where(func.lower(Profile.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()
