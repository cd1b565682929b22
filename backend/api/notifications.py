"""Notifications API endpoints for managing the caller's in-app notifications."""
import logging
from uuid import UUID

from fastapi import APIRouter, Query

from backend.api.deps import AsyncSessionDep, CurrentUser
from backend.schemas.auth import MessageResponse
from backend.schemas.notifications import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from backend.services.notification_service import InAppNotificationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"],
)


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
    description="The caller's unexpired notifications, newest first.",
)
async def list_notifications(
    db: AsyncSessionDep,
    current_user: CurrentUser,
    limit: int = Query(default=20, ge=1, le=100, description="Maximum notifications to return"),
    unread_only: bool = Query(default=False, description="Only unread notifications"),
) -> NotificationListResponse:
    service = InAppNotificationService(db)
    notifications = await service.list_for_user(current_user.id, limit=limit, unread_only=unread_only)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=await service.unread_count(current_user.id),
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Get unread notification count",
)
async def get_unread_count(db: AsyncSessionDep, current_user: CurrentUser) -> UnreadCountResponse:
    count = await InAppNotificationService(db).unread_count(current_user.id)
    return UnreadCountResponse(count=count)


@router.put(
    "/mark-all-read",
    response_model=MarkReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(db: AsyncSessionDep, current_user: CurrentUser) -> MarkReadResponse:
    updated = await InAppNotificationService(db).mark_all_read(current_user.id)
    logger.info(f"Marked {updated} notifications as read for user {current_user.id}")
    return MarkReadResponse(message=f"Marked {updated} notifications as read", updated_count=updated)


@router.put(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    summary="Mark notification as read",
)
async def mark_read(
    notification_id: UUID,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> MarkReadResponse:
    notification = await InAppNotificationService(db).mark_read(current_user.id, notification_id)
    return MarkReadResponse(
        message="Notification marked as read",
        notification=NotificationResponse.model_validate(notification),
    )


@router.delete(
    "/{notification_id}",
    response_model=MessageResponse,
    summary="Delete notification",
)
async def delete_notification(
    notification_id: UUID,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> MessageResponse:
    await InAppNotificationService(db).delete(current_user.id, notification_id)
    return MessageResponse(message="Notification deleted")
