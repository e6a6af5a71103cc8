"""
Health Router
Liveness check for load balancers and uptime monitors.
"""

from fastapi import APIRouter

from renthive.core.config import get_settings

router = APIRouter()


@router.get("/health")
async def health():
    settings = get_settings()
    return {"status": "ok", "app": settings.app_name, "version": settings.app_version}
