"""
In-app notifications.

Lifecycle events (proposal submitted, review assigned, review completed, new
grant) build NotificationPayload objects and hand them to the Celery outbox
task, which writes them in bulk. Enqueue failures are logged and never reach
the caller; failures inside the task are retried by Celery.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import NotFoundError
from backend.models import (
    Grant,
    Notification,
    NotificationPriority,
    NotificationType,
    Proposal,
    ProposalStatus,
    Review,
    User,
    UserRole,
)
from backend.schemas.notifications import NotificationPayload

logger = structlog.get_logger(__name__)


class InAppNotificationService:
    """Create, list and maintain notifications for users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_many(
        self,
        payloads: Sequence[NotificationPayload],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Bulk insert notifications. Each one expires after the configured
        retention period (30 days by default).

        Returns:
            Number of rows written.
        """
        if not payloads:
            return 0

        now = now or datetime.now(timezone.utc)
        expires_at = now + timedelta(days=settings.notification_expire_days)
        self.db.add_all(
            [
                Notification(
                    recipient_id=p.recipient_id,
                    sender_id=p.sender_id,
                    type=p.type,
                    title=p.title,
                    message=p.message,
                    data=p.data,
                    priority=p.priority,
                    read=False,
                    created_at=now,
                    expires_at=expires_at,
                )
                for p in payloads
            ]
        )
        await self.db.flush()

        logger.info(
            "notifications_created",
            count=len(payloads),
            types=sorted({p.type.value for p in payloads}),
        )
        return len(payloads)

    def _visible(self, user_id: UUID, now: datetime):
        return and_(Notification.recipient_id == user_id, Notification.expires_at > now)

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 20,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Newest first, expired notifications excluded."""
        now = datetime.now(timezone.utc)
        query = select(Notification).where(self._visible(user_id, now))
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        now = datetime.now(timezone.utc)
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                self._visible(user_id, now),
                Notification.read.is_(False),
            )
        )
        return result.scalar_one()

    async def _get_owned(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.recipient_id != user_id:
            raise NotFoundError("Notification", str(notification_id))
        return notification

    async def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = await self._get_owned(user_id, notification_id)
        notification.read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.recipient_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        return result.rowcount or 0

    async def delete(self, user_id: UUID, notification_id: UUID) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.db.delete(notification)
        await self.db.flush()

    async def cleanup(self, now: Optional[datetime] = None) -> int:
        """Remove expired notifications and read ones past the retention period."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=settings.notification_expire_days)
        result = await self.db.execute(
            delete(Notification).where(
                or_(
                    Notification.expires_at <= now,
                    and_(Notification.read.is_(True), Notification.created_at < cutoff),
                )
            )
        )
        deleted = result.rowcount or 0
        logger.info("notifications_cleaned_up", deleted=deleted)
        return deleted


# =============================================================================
# Outbox
# =============================================================================


def enqueue_notifications(payloads: Sequence[NotificationPayload]) -> bool:
    """
    Hand notifications to the background dispatcher.

    Returns False when the broker could not be reached; the error is logged
    and the calling operation carries on.
    """
    if not payloads:
        return True

    from backend.tasks.notifications import dispatch_notifications

    try:
        dispatch_notifications.delay([p.model_dump(mode="json") for p in payloads])
    except Exception as e:
        logger.error(
            "notification_enqueue_failed",
            count=len(payloads),
            types=sorted({p.type.value for p in payloads}),
            error=str(e),
        )
        return False
    return True


async def _user_ids_with_role(db: AsyncSession, role: UserRole) -> list[UUID]:
    result = await db.execute(select(User.id).where(User.role == role))
    return list(result.scalars().all())


async def notify_proposal_submitted(db: AsyncSession, proposal: Proposal, researcher: User) -> None:
    """Tell every admin that a proposal arrived."""
    try:
        admin_ids = await _user_ids_with_role(db, UserRole.ADMIN)
        enqueue_notifications(
            [
                NotificationPayload(
                    recipient_id=admin_id,
                    sender_id=researcher.id,
                    type=NotificationType.PROPOSAL_SUBMITTED,
                    title="New Proposal Submitted",
                    message=f'{researcher.full_name} submitted a new proposal: "{proposal.title}"',
                    data={"proposal_id": str(proposal.id), "grant_id": str(proposal.grant_id)},
                    priority=NotificationPriority.MEDIUM,
                )
                for admin_id in admin_ids
            ]
        )
    except Exception as e:
        logger.error("notify_proposal_submitted_failed", proposal_id=str(proposal.id), error=str(e))


async def notify_review_completed(
    db: AsyncSession,
    proposal: Proposal,
    review: Review,
    reviewer: User,
    old_status: ProposalStatus,
) -> None:
    """Tell admins a review is in, and tell the researcher their status moved."""
    try:
        admin_ids = await _user_ids_with_role(db, UserRole.ADMIN)
        decision = review.decision.value if review.decision else "No decision"
        data = {
            "proposal_id": str(proposal.id),
            "review_id": str(review.id),
            "decision": decision,
        }
        payloads = [
            NotificationPayload(
                recipient_id=admin_id,
                sender_id=reviewer.id,
                type=NotificationType.REVIEW_COMPLETED,
                title="Review Completed",
                message=f'{reviewer.full_name} completed a review for "{proposal.title}" ({decision})',
                data=data,
                priority=NotificationPriority.MEDIUM,
            )
            for admin_id in admin_ids
        ]
        payloads.append(
            NotificationPayload(
                recipient_id=proposal.researcher_id,
                sender_id=reviewer.id,
                type=NotificationType.PROPOSAL_STATUS_UPDATE,
                title="Proposal Status Updated",
                message=(
                    f'Your proposal "{proposal.title}" status changed from '
                    f"{old_status.value} to {proposal.status.value}"
                ),
                data={**data, "old_status": old_status.value, "new_status": proposal.status.value},
                priority=(
                    NotificationPriority.HIGH
                    if proposal.status == ProposalStatus.APPROVED
                    else NotificationPriority.MEDIUM
                ),
            )
        )
        enqueue_notifications(payloads)
    except Exception as e:
        logger.error("notify_review_completed_failed", proposal_id=str(proposal.id), error=str(e))


async def notify_new_grant(db: AsyncSession, grant: Grant, admin: User) -> None:
    """Tell every researcher about a newly posted grant."""
    try:
        researcher_ids = await _user_ids_with_role(db, UserRole.RESEARCHER)
        enqueue_notifications(
            [
                NotificationPayload(
                    recipient_id=researcher_id,
                    sender_id=admin.id,
                    type=NotificationType.NEW_GRANT,
                    title="New Grant Available",
                    message=(
                        f'New grant "{grant.title}" is open for applications until '
                        f"{grant.deadline.strftime('%Y-%m-%d')}"
                    ),
                    data={"grant_id": str(grant.id), "category": grant.category.value},
                    priority=NotificationPriority.MEDIUM,
                )
                for researcher_id in researcher_ids
            ]
        )
    except Exception as e:
        logger.error("notify_new_grant_failed", grant_id=str(grant.id), error=str(e))


def notify_review_assigned(proposal: Proposal, reviewer_id: UUID, admin: User) -> None:
    try:
        enqueue_notifications(
            [
                NotificationPayload(
                    recipient_id=reviewer_id,
                    sender_id=admin.id,
                    type=NotificationType.REVIEW_ASSIGNED,
                    title="New Review Assignment",
                    message=f'You have been assigned to review "{proposal.title}"',
                    data={"proposal_id": str(proposal.id)},
                    priority=NotificationPriority.HIGH,
                )
            ]
        )
    except Exception as e:
        logger.error("notify_review_assigned_failed", proposal_id=str(proposal.id), error=str(e))
