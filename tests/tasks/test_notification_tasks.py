"""
Tests for notification Celery tasks: the outbox writer, verification email
and notification cleanup.
"""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from backend.core.config import settings
from backend.models import Notification, NotificationType
from backend.tasks import notifications as notification_tasks


@asynccontextmanager
async def fake_session():
    yield MagicMock(name="session")


def serialized(recipient_id) -> dict:
    return {
        "recipient_id": str(recipient_id),
        "sender_id": None,
        "type": NotificationType.NEW_GRANT.value,
        "title": "New Grant Available",
        "message": 'New grant "Soil Health" is open for applications until 2030-01-01',
        "data": {"grant_id": str(uuid4())},
        "priority": "medium",
    }


@pytest.mark.asyncio
class TestPersistNotifications:
    async def test_writes_all_payloads(self, session_factory, db_researcher, db_reviewer):
        @asynccontextmanager
        async def test_session():
            async with session_factory() as session:
                yield session
                await session.commit()

        with patch.object(notification_tasks, "get_async_session", test_session):
            created = await notification_tasks.persist_notifications(
                [serialized(db_researcher.id), serialized(db_reviewer.id)]
            )

        assert created == 2
        async with session_factory() as session:
            rows = list((await session.execute(select(Notification))).scalars())
        assert {r.recipient_id for r in rows} == {db_researcher.id, db_reviewer.id}
        assert all(r.type == NotificationType.NEW_GRANT for r in rows)

    async def test_invalid_payload_raises(self):
        with pytest.raises(Exception):
            await notification_tasks.persist_notifications([{"title": "missing everything else"}])


class TestDispatchTask:
    def test_returns_created_count(self):
        with patch.object(notification_tasks, "persist_notifications", new=AsyncMock(return_value=3)):
            result = notification_tasks.dispatch_notifications([serialized(uuid4())])

        assert result == {"status": "created", "count": 3}


class TestCleanupTask:
    def test_reports_deleted(self):
        with patch.object(notification_tasks, "get_async_session", fake_session), patch.object(
            notification_tasks.InAppNotificationService, "cleanup", new=AsyncMock(return_value=4)
        ):
            result = notification_tasks.cleanup_notifications()

        assert result == {"status": "ok", "deleted": 4}


class TestVerificationEmail:
    def test_skipped_without_sendgrid(self):
        with patch.object(settings, "sendgrid_api_key", None):
            result = notification_tasks.send_verification_email(
                email="new@university.edu", name="New", verification_url="http://localhost:5173/verify-email/abc"
            )

        assert result["status"] == "skipped"
        assert result["reason"] == "SendGrid not configured"

    def test_sends_through_sendgrid(self):
        client = MagicMock()
        client.send.return_value = MagicMock(status_code=202)

        with patch.object(settings, "sendgrid_api_key", "SG.test-key"), patch(
            "sendgrid.SendGridAPIClient", return_value=client
        ):
            result = notification_tasks.send_verification_email(
                email="new@university.edu", name="New", verification_url="http://localhost:5173/verify-email/abc"
            )

        assert result == {"status": "sent", "email": "new@university.edu", "status_code": 202}
        client.send.assert_called_once()

    def test_send_failure_reported(self):
        client = MagicMock()
        client.send.side_effect = RuntimeError("sendgrid down")

        with patch.object(settings, "sendgrid_api_key", "SG.test-key"), patch(
            "sendgrid.SendGridAPIClient", return_value=client
        ):
            result = notification_tasks.send_verification_email(
                email="new@university.edu", name="New", verification_url="http://x/verify-email/abc"
            )

        assert result["status"] == "failed"
        assert "sendgrid down" in result["error"]

    def test_email_content(self):
        subject, plain, html = notification_tasks.build_verification_email("Rita", "http://x/verify-email/tok")

        assert subject == f"Verify Your {settings.app_name} Email Address"
        assert "Hi Rita" in plain
        assert "http://x/verify-email/tok" in plain
        assert 'href="http://x/verify-email/tok"' in html
