"""
RentHive - FastAPI Application
Property management backend for landlords and tenants.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from renthive.core.config import get_settings
from renthive.core.database import close_db, init_db
from renthive.core.errors import setup_exception_handlers
from renthive.core.logging_config import setup_logging
from renthive.core.rate_limit import limiter, rate_limit_exceeded_handler
from renthive.routers import (
    agreements,
    auth,
    billing,
    calendar,
    contracts,
    documents,
    files,
    health,
    properties,
    property_users,
    requests,
    timeline,
    uploads,
    users,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release the engine on shutdown."""
    settings = get_settings()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    await init_db()
    logger.info("Database ready")
    yield
    await close_db()
    logger.info("%s stopped", settings.app_name)


def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json_format)

    tags_metadata = [
        {"name": "Health", "description": "Liveness check."},
        {"name": "Authentication", "description": "Sign-up and sign-in through Supabase Auth."},
        {"name": "Users", "description": "Profile lookups."},
        {"name": "Properties", "description": "Property CRUD."},
        {"name": "Property Users", "description": "Members, roles and invitations."},
        {"name": "Timeline", "description": "Lease, rent, inspection and maintenance events."},
        {"name": "Agreements", "description": "Shared checklists with assignable tasks."},
        {"name": "Documents", "description": "Property documents in object storage."},
        {"name": "Uploads", "description": "Room photos and videos."},
        {"name": "Requests", "description": "Repair and deposit requests emailed to the landlord."},
        {"name": "Billing", "description": "Stripe subscriptions and usage limits."},
        {"name": "Contracts", "description": "AI rental contract analysis."},
        {"name": "Calendar", "description": "iCalendar export."},
    ]

    app = FastAPI(
        title=settings.app_name,
        description=f"""{settings.app_description}

## Authentication
Send the Supabase access token from `/api/auth/login` as `Authorization: Bearer <token>`.

## Error Responses
Errors return JSON as `{{"success": false, "error": "<message>"}}`.
""",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.enable_docs else None,
        redoc_url="/api/redoc" if settings.enable_docs else None,
        openapi_url="/api/openapi.json" if settings.enable_docs else None,
        openapi_tags=tags_metadata,
    )

    # =========================================================================
    # Rate Limiting
    # =========================================================================
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # =========================================================================
    # Middleware
    # =========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # =========================================================================
    # Exception Handlers
    # =========================================================================
    setup_exception_handlers(app)

    # =========================================================================
    # Register Routers
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(properties.router, prefix="/api/properties", tags=["Properties"])
    app.include_router(property_users.router, prefix="/api", tags=["Property Users"])
    app.include_router(timeline.router, prefix="/api/timeline", tags=["Timeline"])
    app.include_router(agreements.router, prefix="/api/agreements", tags=["Agreements"])
    app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
    app.include_router(uploads.router, prefix="/api", tags=["Uploads"])
    app.include_router(files.router, prefix="/api/files", tags=["Uploads"])
    app.include_router(requests.router, prefix="/api", tags=["Requests"])
    app.include_router(billing.router, prefix="/api/stripe", tags=["Billing"])
    app.include_router(contracts.router, prefix="/api/contracts", tags=["Contracts"])
    app.include_router(calendar.router, prefix="/api/calendar", tags=["Calendar"])

    return app


# Create the app instance
app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "renthive.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
