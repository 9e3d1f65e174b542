"""
FastAPI Application Entry Point

Canteen Maintenance Gate - system settings and maintenance-mode service
for the college canteen ordering platform.

Endpoints:
    - GET   /api/system-settings: Full system settings (admin)
    - PUT   /api/system-settings: Update settings sections (admin)
    - PATCH /api/system-settings/maintenance: Update the maintenance rule (admin)
    - GET   /api/system-settings/maintenance-status: Current maintenance rule
    - GET   /api/system-settings/maintenance-status/{user_id}: Decision for one user
    - GET   /api/system-settings/app-version: Published app version
    - GET   /api/system-settings/notification-status: Notification switch
    - GET   /api/users/me: Signed-in user (maintenance gated)
    - GET   /health: System health check
"""

import asyncio
import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from canteen_gate.core.config import get_settings, setup_logging
from canteen_gate.database import get_db, init_db, engine
from canteen_gate.schemas import (
    AppVersionResponse,
    CandidateUser,
    ErrorResponse,
    HealthResponse,
    MaintenanceBlockedResponse,
    MaintenanceRule,
    MaintenanceRuleUpdate,
    MaintenanceUpdateResponse,
    NotificationStatusResponse,
    SystemSettingsResponse,
    SystemSettingsUpdate,
    UserMaintenanceCheck,
)
from canteen_gate.services.cache import get_status_cache, reset_status_cache
from canteen_gate.services.identity import (
    IdentityLookupError,
    get_identity_provider,
    reset_identity_provider,
)
from canteen_gate.services.maintenance import decide
from canteen_gate.services.maintenance.store import MaintenanceRuleStore
from canteen_gate.services.maintenance.dependencies import (
    MaintenanceBlockedError,
    build_server_gate,
    get_maintenance_gate,
    require_admin,
    require_maintenance_clearance,
    require_user,
)
from canteen_gate.services.maintenance.gate import MaintenanceGate

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

# Template configuration
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    cache = get_status_cache()
    identity = get_identity_provider()
    logger.info(f"✅ Status Cache: {cache.provider_name}")
    logger.info(f"✅ Identity Provider: {identity.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    gate: MaintenanceGate = app.state.maintenance_gate
    await gate.refresh()
    gate.start()

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await gate.stop()
    await cache.close()
    await identity.close()
    reset_status_cache()
    reset_identity_provider()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "System settings and maintenance-mode targeting for the canteen "
        "ordering platform. Maintenance can target everyone, specific users, "
        "departments or study years, with admin bypass on settings routes."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.maintenance_gate = build_server_gate()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_rule_store(db: AsyncSession = Depends(get_db)) -> MaintenanceRuleStore:
    return MaintenanceRuleStore(db, get_status_cache())


def wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "maintenance_status": "/api/system-settings/maintenance-status",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    gate: MaintenanceGate = Depends(get_maintenance_gate),
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    cache_status = "healthy" if await get_status_cache().health_check() else "unhealthy"
    identity_status = "healthy" if await get_identity_provider().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, cache_status, identity_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        cache=cache_status,
        identity=identity_status,
        maintenance_active=gate.rule.is_active if gate.rule else None,
        timestamp=datetime.now(),
    )


# =============================================================================
# SYSTEM SETTINGS (ADMIN)
# =============================================================================

@app.get(
    "/api/system-settings",
    response_model=SystemSettingsResponse,
    tags=["System Settings"],
    dependencies=[Depends(require_maintenance_clearance(allow_admin_access=True))],
)
async def get_system_settings(
    admin: CandidateUser = Depends(require_admin),
    store: MaintenanceRuleStore = Depends(get_rule_store),
) -> SystemSettingsResponse:
    """Current system settings; defaults are created on first read."""
    return await store.get_settings()


@app.put(
    "/api/system-settings",
    response_model=SystemSettingsResponse,
    responses={400: {"model": ErrorResponse}},
    tags=["System Settings"],
    dependencies=[Depends(require_maintenance_clearance(allow_admin_access=True))],
)
async def update_system_settings(
    update: SystemSettingsUpdate,
    admin: CandidateUser = Depends(require_admin),
    store: MaintenanceRuleStore = Depends(get_rule_store),
    gate: MaintenanceGate = Depends(get_maintenance_gate),
) -> SystemSettingsResponse:
    """Update one or more settings sections (admin only)."""
    result = await store.update_settings(update, updated_by=update.updated_by or admin.id)
    if update.maintenance_mode is not None:
        gate.invalidate()
    return result


@app.patch(
    "/api/system-settings/maintenance",
    response_model=MaintenanceUpdateResponse,
    tags=["System Settings"],
    summary="Update Maintenance Mode",
    dependencies=[Depends(require_maintenance_clearance(allow_admin_access=True))],
)
async def update_maintenance_mode(
    update: MaintenanceRuleUpdate,
    admin: CandidateUser = Depends(require_admin),
    store: MaintenanceRuleStore = Depends(get_rule_store),
    gate: MaintenanceGate = Depends(get_maintenance_gate),
) -> MaintenanceUpdateResponse:
    """
    Merge a partial maintenance rule into the stored one.

    Only the supplied fields change. The maintenance-status cache and this
    process's gate are invalidated so the change applies on the next request.
    """
    rule = await store.set_rule(update, updated_by=update.updated_by or admin.id)
    gate.invalidate()
    return MaintenanceUpdateResponse(success=True, maintenance_mode=rule)


# =============================================================================
# MAINTENANCE STATUS (PUBLIC)
# =============================================================================

@app.get(
    "/api/system-settings/maintenance-status",
    response_model=MaintenanceRule,
    tags=["Maintenance"],
    summary="Current Maintenance Rule",
)
async def maintenance_status(
    store: MaintenanceRuleStore = Depends(get_rule_store),
) -> MaintenanceRule:
    """Polled by every client; served through the status cache."""
    return await store.get_rule()


@app.get(
    "/api/system-settings/maintenance-status/{user_id}",
    response_model=UserMaintenanceCheck,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Maintenance"],
    summary="Maintenance Decision For A User",
)
async def user_maintenance_status(
    user_id: str,
    allow_admin_access: bool = Query(False, alias="allowAdminAccess"),
    store: MaintenanceRuleStore = Depends(get_rule_store),
) -> UserMaintenanceCheck:
    """Evaluate the current rule against one user of the identity provider."""
    try:
        user = await get_identity_provider().get_user(user_id)
    except IdentityLookupError as e:
        logger.warning(f"Identity lookup failed for user {user_id}: {e}")
        raise HTTPException(status_code=503, detail="Identity service unavailable")

    if user is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")

    try:
        rule = await store.get_rule()
    except Exception as e:
        # Same fail-open answer the in-process gate gives
        logger.warning(f"Maintenance status unavailable, failing open: {e}")
        rule = None

    decision = decide(rule, user, allow_admin_access=allow_admin_access)

    return UserMaintenanceCheck(
        user_id=user_id,
        show_maintenance=decision.blocked,
        reason=decision.reason.value,
        maintenance_info=decision.notice,
    )


@app.get(
    "/api/system-settings/app-version",
    response_model=AppVersionResponse,
    tags=["System Settings"],
)
async def app_version(
    store: MaintenanceRuleStore = Depends(get_rule_store),
) -> AppVersionResponse:
    info = await store.get_app_version()
    return AppVersionResponse(version=info.version, build_timestamp=info.build_timestamp)


@app.get(
    "/api/system-settings/notification-status",
    response_model=NotificationStatusResponse,
    tags=["System Settings"],
)
async def notification_status(
    store: MaintenanceRuleStore = Depends(get_rule_store),
) -> NotificationStatusResponse:
    return NotificationStatusResponse(is_enabled=await store.notifications_enabled())


# =============================================================================
# USER ENDPOINTS
# =============================================================================

@app.get(
    "/api/users/me",
    response_model=CandidateUser,
    responses={401: {"model": ErrorResponse}, 503: {"model": MaintenanceBlockedResponse}},
    tags=["Users"],
    dependencies=[Depends(require_maintenance_clearance())],
)
async def current_user(
    user: CandidateUser = Depends(require_user),
) -> CandidateUser:
    """Signed-in user profile, used by the app shell on every navigation."""
    return user


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(MaintenanceBlockedError)
async def maintenance_blocked_handler(request: Request, exc: MaintenanceBlockedError):
    """Render the maintenance screen (HTML) or notice (JSON) with 503."""
    gate: Optional[MaintenanceGate] = getattr(request.app.state, "maintenance_gate", None)
    retry_after = int(gate.poll_interval if gate else settings.maintenance_poll_interval_seconds)
    headers = {"Retry-After": str(retry_after), "Cache-Control": "no-store"}

    if wants_html(request):
        return templates.TemplateResponse(
            request,
            "maintenance.html",
            {"notice": exc.notice, "retry_after": retry_after},
            status_code=503,
            headers=headers,
        )

    body = MaintenanceBlockedResponse(maintenance=exc.notice)
    return JSONResponse(
        status_code=503,
        content=body.model_dump(by_alias=True, mode="json"),
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
