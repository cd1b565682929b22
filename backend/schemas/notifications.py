"""Notification schemas for API request/response validation."""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.models import NotificationPriority, NotificationType


class NotificationPayload(BaseModel):
    """
    Serializable notification handed to the outbox task.

    Kept JSON-safe (ids as strings via ``model_dump(mode="json")``) so it can
    cross the Celery broker.
    """

    recipient_id: UUID
    sender_id: Optional[UUID] = None
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM


class NotificationResponse(BaseModel):
    """Response schema for a notification."""

    id: UUID = Field(..., description="Unique identifier for the notification")
    recipient_id: UUID = Field(..., description="User who receives this notification")
    sender_id: Optional[UUID] = Field(None, description="User whose action triggered it")
    type: NotificationType = Field(..., description="Notification type")
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification message content")
    data: dict[str, Any] = Field(default_factory=dict, description="Additional context data")
    read: bool = Field(..., description="Whether the notification has been read")
    priority: NotificationPriority
    expires_at: datetime
    created_at: datetime = Field(..., description="When the notification was created")

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int = Field(..., description="Number of unread, unexpired notifications")


class UnreadCountResponse(BaseModel):
    count: int = Field(..., description="Number of unread notifications")


class MarkReadResponse(BaseModel):
    success: bool = True
    message: str
    notification: Optional[NotificationResponse] = None
    updated_count: Optional[int] = None
