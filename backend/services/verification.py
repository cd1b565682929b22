"""
Email verification tokens.

Only the SHA-256 of a token is stored; the raw token travels in the emailed
link. Tokens expire after ``email_verification_expire_hours``.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import ValidationError
from backend.models import User

logger = structlog.get_logger(__name__)


def hash_token(token: str) -> str:
    """
    SHA-256 is enough here: tokens are random with high entropy, and lookup
    by hash has to be fast.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def generate_verification_token(now: Optional[datetime] = None) -> tuple[str, str, datetime]:
    """
    Returns:
        Tuple of (raw_token, token_hash, expiration_datetime).
    """
    now = now or datetime.now(timezone.utc)
    raw_token = secrets.token_urlsafe(32)
    return raw_token, hash_token(raw_token), now + timedelta(hours=settings.email_verification_expire_hours)


async def issue_verification_email(db: AsyncSession, user: User) -> str:
    """
    Store a fresh token on ``user`` and queue the verification email.

    Queueing is best-effort: a broker outage is logged and the token stays
    valid, so the user can ask for a resend.

    Returns:
        The raw token (only ever sent by email).
    """
    raw_token, token_hash, expires = generate_verification_token()
    user.email_verification_token_hash = token_hash
    user.email_verification_expires = expires
    await db.flush()

    from backend.tasks.notifications import send_verification_email

    verification_url = f"{settings.frontend_url}/verify-email/{raw_token}"
    try:
        send_verification_email.delay(
            email=user.email,
            name=user.first_name,
            verification_url=verification_url,
        )
        logger.info("verification_email_queued", user_id=str(user.id))
    except Exception as e:
        logger.error("verification_email_enqueue_failed", user_id=str(user.id), error=str(e))

    return raw_token


async def verify_email_token(db: AsyncSession, token: str, now: Optional[datetime] = None) -> User:
    """
    Mark the owner of ``token`` as verified and invalidate the token.

    Raises:
        ValidationError: unknown or expired token.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(User).where(User.email_verification_token_hash == hash_token(token)))
    user = result.scalar_one_or_none()

    if user is None or user.email_verification_expires is None or user.email_verification_expires < now:
        raise ValidationError("Invalid or expired verification token.")

    user.is_email_verified = True
    user.email_verification_token_hash = None
    user.email_verification_expires = None
    await db.flush()

    logger.info("email_verified", user_id=str(user.id))
    return user
