"""
Sentry Error Tracking Configuration
Sentry SDK setup shared by the API process and the Celery workers.
"""

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from backend.core.config import settings

logger = logging.getLogger(__name__)

# Headers and multipart fields that must never leave the process
SENSITIVE_HEADERS = ("authorization", "cookie")
SENSITIVE_FIELDS = ("password", "token", "jwt_secret")


def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Drop health-check noise and scrub credentials from request data."""
    request = event.get("request")
    if not request:
        return event

    if request.get("url", "").endswith("/health"):
        return None

    headers = request.get("headers") or {}
    for header in SENSITIVE_HEADERS:
        if header in headers:
            headers[header] = "[REDACTED]"

    data = request.get("data")
    if isinstance(data, dict):
        for field in SENSITIVE_FIELDS:
            if field in data:
                data[field] = "[REDACTED]"

    # Verification links carry the raw token in the path
    if "/verify-email/" in request.get("url", ""):
        request["url"] = request["url"].rsplit("/", 1)[0] + "/[REDACTED]"

    return event


def init_sentry(component: str = "api") -> bool:
    """
    Initialize the Sentry SDK.

    Args:
        component: "api" or "worker", used as a tag and to pick integrations.

    Returns:
        True when Sentry is active, False when no DSN is configured or init failed.
    """
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    integrations = [
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        SqlalchemyIntegration(),
    ]
    if component == "worker":
        integrations.append(CeleryIntegration())
    else:
        integrations.extend(
            [
                FastApiIntegration(transaction_style="endpoint"),
                StarletteIntegration(transaction_style="endpoint"),
            ]
        )

    try:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment or settings.environment,
            release=f"grantportal@{settings.app_version}",
            traces_sample_rate=settings.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry_profiles_sample_rate,
            integrations=integrations,
            before_send=before_send,
            send_default_pii=False,
            attach_stacktrace=True,
        )
        sentry_sdk.set_tag("component", component)
        logger.info(
            f"Sentry initialized (component={component}, "
            f"env={settings.sentry_environment or settings.environment})"
        )
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def capture_exception(
    error: Exception,
    user_id: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str | None:
    """
    Capture an exception and send to Sentry.

    Returns:
        Event ID if captured, None otherwise
    """
    with sentry_sdk.push_scope() as scope:
        if user_id:
            scope.set_user({"id": user_id})
        for key, value in (extra or {}).items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(error)


def set_user_context(user_id: str, role: str | None = None) -> None:
    """Associate subsequent Sentry events with the authenticated user."""
    sentry_sdk.set_user({"id": user_id})
    if role:
        sentry_sdk.set_tag("user_role", role)
