"""
Grant Portal FastAPI Application
Main entry point for the grant management API.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.api import (
    announcements,
    auth,
    community,
    contact,
    grants,
    health,
    notifications,
    proposals,
    reports,
    resources,
    reviews,
    users,
)
from backend.core.config import settings
from backend.core.rate_limit import RateLimitMiddleware, close_rate_limiter
from backend.core.sentry import capture_exception, init_sentry
from backend.database import close_db, init_db

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Events
# =============================================================================


def validate_security_settings() -> None:
    """
    Validate critical security settings at startup.
    Raises RuntimeError if insecure configuration detected in production.
    """
    is_production = settings.environment.lower() in ("production", "prod")
    warnings = []
    errors = []

    insecure_secrets = {"secret", "changeme", "dev-secret", "jwt-secret"}
    if settings.jwt_secret.lower() in insecure_secrets or len(settings.jwt_secret) < 32:
        msg = "JWT_SECRET is insecure or too short (minimum 32 characters required)"
        if is_production:
            errors.append(msg)
        else:
            warnings.append(msg)

    if is_production and settings.debug:
        errors.append("DEBUG mode must be disabled in production (set DEBUG=false)")

    if is_production and not settings.sendgrid_api_key:
        warnings.append("SENDGRID_API_KEY is not set - verification emails will not be delivered")

    for warning in warnings:
        logger.warning(f"SECURITY WARNING: {warning}")

    if errors:
        for error in errors:
            logger.error(f"SECURITY ERROR: {error}")
        raise RuntimeError(f"Cannot start in production with insecure configuration: {'; '.join(errors)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: validate security settings, enable Sentry, create tables in
    debug mode. Shutdown: close the rate limiter and database pool.
    """
    logger.info("Starting Grant Portal API...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Version: {settings.app_version}")

    validate_security_settings()

    if init_sentry():
        logger.info("Sentry error tracking enabled")
    else:
        logger.info("Sentry error tracking disabled (no DSN configured)")

    # Production schemas come from Alembic migrations
    if settings.debug:
        try:
            await init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Grant Portal API...")
    await close_rate_limiter()
    await close_db()
    logger.info("Database connections closed")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Grant Portal API",
    description="""
    Grant Management Portal API

    Researchers submit proposals against published grants, reviewers evaluate
    them, and administrators manage users, grants and reporting.

    ## Authentication

    Most endpoints require a JWT. Obtain one from `/api/auth/login` and send it
    as `Authorization: Bearer <token>`. Download links also accept `?token=`.
    """,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# =============================================================================
# Middleware
# =============================================================================

allowed_origins = [settings.frontend_url]
allowed_origins.extend(o.strip() for o in settings.cors_origins.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=sorted(set(allowed_origins)),
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

if settings.rate_limit_enabled:
    app.add_middleware(RateLimitMiddleware)
    logger.info("Rate limiting middleware enabled")
else:
    logger.info("Rate limiting middleware disabled")


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    content = {
        "error": True,
        "message": exc.detail,
        "status_code": exc.status_code,
    }
    code = getattr(exc, "code", None)
    if code:
        content["code"] = code

    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures, reported per field as 400."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form"))
        errors.append({"field": field or "request", "message": error.get("msg", "Invalid value")})

    message = "Validation failed: " + "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": True,
            "message": message,
            "status_code": 400,
            "errors": errors,
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    event_id = capture_exception(
        exc,
        user_id=getattr(request.state, "user_id", None),
        extra={
            "request_url": str(request.url),
            "request_method": request.method,
            "request_path": request.url.path,
        },
    )

    # Don't expose internal errors in production
    if settings.debug:
        detail = str(exc)
    else:
        detail = f"Internal server error (ref: {event_id})" if event_id else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "message": detail,
            "status_code": 500,
            "error_id": event_id,
        },
    )


# =============================================================================
# API Routers
# =============================================================================

# Public endpoints - no auth required
app.include_router(health.router)

app.include_router(auth.router)
app.include_router(grants.router)
app.include_router(proposals.router)
app.include_router(reviews.router)
app.include_router(reports.router)
app.include_router(users.router)
app.include_router(notifications.router)
app.include_router(announcements.router)
app.include_router(community.router)
app.include_router(resources.router)
app.include_router(contact.router)


@app.get("/", tags=["Root"], summary="API root")
async def root() -> dict[str, Any]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Grant Management Portal API",
        "docs_url": "/docs" if settings.debug else None,
        "health_url": "/health",
        "readiness_url": "/health/ready",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
