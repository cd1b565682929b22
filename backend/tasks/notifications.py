"""
Grant Portal Notification Tasks

This module handles:
- The notification outbox: bulk-writing in-app notifications queued by
  lifecycle events
- Verification emails sent through SendGrid
- Daily pruning of expired and old read notifications
"""
import asyncio
import logging
from typing import Any

from backend.celery_app import celery_app
from backend.core.config import settings
from backend.database import get_async_session
from backend.schemas.notifications import NotificationPayload
from backend.services.notification_service import InAppNotificationService

logger = logging.getLogger(__name__)


# =============================================================================
# Notification Outbox
# =============================================================================


async def persist_notifications(payloads: list[dict[str, Any]]) -> int:
    """Validate serialized payloads and write them in one transaction."""
    notifications = [NotificationPayload.model_validate(p) for p in payloads]
    async with get_async_session() as session:
        return await InAppNotificationService(session).create_many(notifications)


@celery_app.task(queue="critical", name="backend.tasks.notifications.dispatch_notifications")
def dispatch_notifications(payloads: list[dict[str, Any]]) -> dict:
    """
    Write queued notifications.

    Raised errors are retried with backoff by the base task class and logged
    by its failure hook once retries run out.
    """
    created = asyncio.run(persist_notifications(payloads))
    logger.info(f"Dispatched {created} notifications")
    return {"status": "created", "count": created}


async def _cleanup_async() -> int:
    async with get_async_session() as session:
        return await InAppNotificationService(session).cleanup()


@celery_app.task(queue="normal", name="backend.tasks.notifications.cleanup_notifications")
def cleanup_notifications() -> dict:
    """Delete expired notifications and read notifications past retention."""
    deleted = asyncio.run(_cleanup_async())
    return {"status": "ok", "deleted": deleted}


# =============================================================================
# Email
# =============================================================================


def build_verification_email(name: str, verification_url: str) -> tuple[str, str, str]:
    """Return (subject, plain text, html) for a verification email."""
    subject = f"Verify Your {settings.app_name} Email Address"

    plain_content = f"""
    Verify Your Email Address

    Hi {name},

    Thank you for registering with {settings.app_name}. Please confirm your email address by opening the link below:

    {verification_url}

    This link expires in {settings.email_verification_expire_hours} hours.

    If you did not create an account, you can ignore this email.

    - The {settings.app_name} Team
    """

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #1e3a8a; padding: 24px; text-align: center; border-radius: 8px 8px 0 0;">
            <h1 style="color: white; margin: 0; font-size: 24px;">{settings.app_name}</h1>
        </div>
        <div style="padding: 24px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 8px 8px;">
            <h2 style="margin-top: 0;">Verify Your Email Address</h2>
            <p>Hi {name},</p>
            <p>Thank you for registering with {settings.app_name}. Please confirm your email address:</p>
            <p style="text-align: center; margin: 28px 0;">
                <a href="{verification_url}" style="background: #2563eb; color: white; padding: 12px 28px; text-decoration: none; border-radius: 5px; font-weight: bold;">Verify Email</a>
            </p>
            <p style="color: #6b7280; font-size: 14px;">This link expires in {settings.email_verification_expire_hours} hours.</p>
            <p style="color: #9ca3af; font-size: 12px;">If the button does not work, paste this link into your browser:<br>{verification_url}</p>
        </div>
    </body>
    </html>
    """
    return subject, plain_content, html_content


@celery_app.task(queue="critical", name="backend.tasks.notifications.send_verification_email")
def send_verification_email(email: str, name: str, verification_url: str) -> dict:
    """
    Send an email verification link.

    Returns:
        Dictionary with send status.
    """
    try:
        if not settings.sendgrid_api_key:
            logger.warning(f"SendGrid not configured - would send verification email to {email}")
            return {
                "status": "skipped",
                "reason": "SendGrid not configured",
                "email": email,
            }

        import sendgrid
        from sendgrid.helpers.mail import Content, Email, Mail, To

        sg = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
        subject, plain_content, html_content = build_verification_email(name, verification_url)

        mail = Mail(Email(settings.from_email, settings.from_name), To(email), subject, Content("text/plain", plain_content))
        mail.add_content(Content("text/html", html_content))

        response = sg.send(mail)
        logger.info(f"Verification email sent to {email}, status_code={response.status_code}")

        return {
            "status": "sent",
            "email": email,
            "status_code": response.status_code,
        }

    except Exception as e:
        logger.error(f"Failed to send verification email to {email}: {e}", exc_info=True)
        return {
            "status": "failed",
            "email": email,
            "error": str(e),
        }
