"""
Dojo Manager API - Main Application

Multi-tenant management API for martial-arts schools:
- /api/...                      → School-scoped API (school taken from the token)
- /api/admin/...                → Platform admin API
- /api/schools/{subdomain}/info → Public school info (for login page)
- /api/billing/webhook          → Stripe webhook
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database import init_db, db
from database.seed import seed_platform_admin
from core.config import settings
from core.exceptions import AppError
from core.logging_config import setup_logging
from core.tenant import setup_school_events

from routers import (
    auth_router, schools_router, events_router, pay_router,
    payment_methods_router, billing_router, connect_router, belts_router,
    charges_router, notifications_router, presence_router, posts_router,
    announcements_router, classes_router, attendance_router, families_router,
)
from routers.admin import admin_schools_router, admin_billing_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging(settings.log_level)
    logger.info("Starting Dojo Manager API...")

    try:
        init_db()
        setup_school_events()
        logger.info("School events registered")

        with db.get_session() as session:
            seed_platform_admin(session)

    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Dojo Manager API started")
    yield
    logger.info("Shutting down Dojo Manager API...")


app = FastAPI(
    title=settings.app_name,
    description="""
    Multi-tenant management API for martial-arts schools.

    * **Auth** - Login, token refresh, current profile
    * **Events** - Events, registrations, owner bulk registration
    * **Payments** - Event, belt test, custom charge and monthly payments (Stripe)
    * **Billing** - Platform subscription, webhook, billing reminders
    * **Community** - Posts, comments, announcements, notifications, presence
    * **Dojo** - Belts, classes, attendance, families, students

    ## Platform admin: /api/admin/...
    * **Schools** - Create schools, override subscriptions
    * **Billing** - Overview and revenue
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERROR HANDLERS ====================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "fields": fields},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


# ==================== HEALTH ====================

@app.get("/", tags=["Health"])
async def root():
    return {
        "message": settings.app_name,
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    try:
        with db.get_session() as session:
            session.execute(text("SELECT 1"))
        return {"status": "healthy", "database": "connected"}
    except SQLAlchemyError as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "disconnected"}
        )


# ==================== PLATFORM ADMIN ROUTES ====================

app.include_router(admin_schools_router, prefix="/api/admin/schools", tags=["Admin - Schools"])
app.include_router(admin_billing_router, prefix="/api/admin/billing", tags=["Admin - Billing"])


# ==================== SCHOOL-SCOPED ROUTES ====================
# The school comes from the authenticated profile; get_current_profile binds it

API_PREFIX = "/api"

app.include_router(auth_router, prefix=f"{API_PREFIX}/auth", tags=["Authentication"])
app.include_router(schools_router, prefix=f"{API_PREFIX}/schools", tags=["Public"])
app.include_router(events_router, prefix=f"{API_PREFIX}/events", tags=["Events"])
app.include_router(pay_router, prefix=f"{API_PREFIX}/pay", tags=["Payments"])
app.include_router(payment_methods_router, prefix=f"{API_PREFIX}/payment-methods", tags=["Payment Methods"])
app.include_router(billing_router, prefix=f"{API_PREFIX}/billing", tags=["Billing"])
app.include_router(connect_router, prefix=f"{API_PREFIX}/connect", tags=["Stripe Connect"])
app.include_router(belts_router, prefix=API_PREFIX, tags=["Belts"])
app.include_router(charges_router, prefix=f"{API_PREFIX}/custom-charges", tags=["Custom Charges"])
app.include_router(notifications_router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(presence_router, prefix=f"{API_PREFIX}/presence", tags=["Presence"])
app.include_router(posts_router, prefix=f"{API_PREFIX}/posts", tags=["Feed"])
app.include_router(announcements_router, prefix=f"{API_PREFIX}/announcements", tags=["Feed"])
app.include_router(classes_router, prefix=f"{API_PREFIX}/classes", tags=["Classes"])
app.include_router(attendance_router, prefix=f"{API_PREFIX}/attendance", tags=["Attendance"])
app.include_router(families_router, prefix=API_PREFIX, tags=["Families"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
