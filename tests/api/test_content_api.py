"""
Tests for announcements, community threads, resources and the contact form.
"""
import pytest
from sqlalchemy import select

from backend.models import ContactMessage

pytestmark = pytest.mark.asyncio


class TestAnnouncements:
    async def test_publish_and_list_pinned_first(self, client, admin_headers):
        await client.post(
            "/api/announcements",
            json={"title": "Portal maintenance", "content": "Down Sunday.", "category": "System"},
            headers=admin_headers,
        )
        pinned = await client.post(
            "/api/announcements",
            json={"title": "Call for reviewers", "content": "Apply now.", "category": "News", "pinned": True},
            headers=admin_headers,
        )

        response = await client.get("/api/announcements")

        assert pinned.status_code == 201
        assert pinned.json()["author"] == "Ada Admin"
        assert [a["title"] for a in response.json()] == ["Call for reviewers", "Portal maintenance"]

    async def test_researcher_cannot_publish(self, client, researcher_headers):
        response = await client.post(
            "/api/announcements",
            json={"title": "Hi", "content": "Hello.", "category": "News"},
            headers=researcher_headers,
        )

        assert response.status_code == 403

    async def test_delete(self, client, admin_headers):
        created = await client.post(
            "/api/announcements",
            json={"title": "Temporary", "content": "Soon gone.", "category": "News"},
            headers=admin_headers,
        )

        response = await client.delete(f"/api/announcements/{created.json()['id']}", headers=admin_headers)
        missing = await client.delete(f"/api/announcements/{created.json()['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert missing.status_code == 404


class TestCommunity:
    async def test_thread_and_reply(self, client, researcher_headers, reviewer_headers):
        created = await client.post(
            "/api/community",
            json={"title": "Budget templates?", "domain": "Funding", "content": "Does anyone have one?"},
            headers=researcher_headers,
        )
        thread_id = created.json()["id"]

        reply = await client.post(
            f"/api/community/{thread_id}/reply", json={"content": "See the resources page."}, headers=reviewer_headers
        )
        fetched = await client.get(f"/api/community/{thread_id}")

        assert created.status_code == 201
        assert created.json()["author"] == "Rita Researcher"
        assert reply.status_code == 201
        assert [r["author"] for r in fetched.json()["replies"]] == ["Victor Reviewer"]

    async def test_reply_to_missing_thread(self, client, researcher_headers):
        response = await client.post(
            "/api/community/00000000-0000-0000-0000-000000000000/reply",
            json={"content": "Hello?"},
            headers=researcher_headers,
        )

        assert response.status_code == 404

    async def test_posting_requires_login(self, client):
        response = await client.post("/api/community", json={"title": "t", "domain": "d", "content": "c"})

        assert response.status_code == 401


class TestResources:
    async def test_create_list_delete(self, client, admin_headers):
        created = await client.post(
            "/api/resources",
            json={"title": "Budget guide", "type": "PDF", "link": "https://example.org/guide.pdf", "tags": ["budget"]},
            headers=admin_headers,
        )
        listed = await client.get("/api/resources")
        deleted = await client.delete(f"/api/resources/{created.json()['id']}", headers=admin_headers)

        assert created.status_code == 201
        assert [r["title"] for r in listed.json()] == ["Budget guide"]
        assert deleted.status_code == 200


class TestContact:
    async def test_stores_message(self, client, session_factory):
        response = await client.post(
            "/api/contact",
            json={
                "name": "Pat Applicant",
                "email": "pat@example.org",
                "subject": "Deadline question",
                "category": "Grants",
                "message": "Can the deadline be extended?",
            },
        )

        assert response.status_code == 201
        async with session_factory() as session:
            stored = (await session.execute(select(ContactMessage))).scalar_one()
        assert stored.subject == "Deadline question"

    async def test_all_fields_required(self, client):
        response = await client.post("/api/contact", json={"name": "Pat", "email": "pat@example.org"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["errors"]}
        assert {"subject", "category", "message"} <= fields
