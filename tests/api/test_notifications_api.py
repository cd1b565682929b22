"""
Tests for the caller's notification endpoints.
"""
from uuid import uuid4

import pytest
import pytest_asyncio

from backend.models import NotificationType
from backend.schemas.notifications import NotificationPayload
from backend.services.notification_service import InAppNotificationService

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def inbox(async_session, db_researcher, db_reviewer):
    """Two notifications for the researcher, one for the reviewer."""
    service = InAppNotificationService(async_session)
    await service.create_many(
        [
            NotificationPayload(
                recipient_id=user.id,
                type=NotificationType.NEW_GRANT,
                title=title,
                message="A new grant is open.",
            )
            for user, title in ((db_researcher, "first"), (db_researcher, "second"), (db_reviewer, "theirs"))
        ]
    )
    await async_session.commit()
    return await service.list_for_user(db_researcher.id)


class TestNotificationEndpoints:
    async def test_list(self, client, inbox, researcher_headers):
        response = await client.get("/api/notifications", headers=researcher_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["unread_count"] == 2
        assert {n["title"] for n in body["notifications"]} == {"first", "second"}

    async def test_mark_read(self, client, inbox, researcher_headers):
        response = await client.put(f"/api/notifications/{inbox[0].id}/read", headers=researcher_headers)
        count = await client.get("/api/notifications/unread-count", headers=researcher_headers)
        unread = await client.get("/api/notifications", params={"unread_only": True}, headers=researcher_headers)

        assert response.status_code == 200
        assert response.json()["notification"]["read"] is True
        assert count.json()["count"] == 1
        assert len(unread.json()["notifications"]) == 1

    async def test_mark_all_read(self, client, inbox, researcher_headers):
        response = await client.put("/api/notifications/mark-all-read", headers=researcher_headers)

        assert response.json()["updated_count"] == 2

    async def test_delete(self, client, inbox, researcher_headers):
        response = await client.delete(f"/api/notifications/{inbox[0].id}", headers=researcher_headers)
        remaining = await client.get("/api/notifications", headers=researcher_headers)

        assert response.status_code == 200
        assert len(remaining.json()["notifications"]) == 1

    async def test_other_users_notification(self, client, inbox, reviewer_headers):
        response = await client.put(f"/api/notifications/{inbox[0].id}/read", headers=reviewer_headers)

        assert response.status_code == 404

    async def test_unknown_notification(self, client, researcher_headers):
        response = await client.delete(f"/api/notifications/{uuid4()}", headers=researcher_headers)

        assert response.status_code == 404

    async def test_limit_bounds(self, client, researcher_headers):
        response = await client.get("/api/notifications", params={"limit": 500}, headers=researcher_headers)

        assert response.status_code == 400
