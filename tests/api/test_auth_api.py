"""
Tests for authentication endpoints.
"""
import pytest
from sqlalchemy import select

from backend.models import User, UserRole, UserStatus
from backend.services.verification import issue_verification_email
from tests.fixtures.factories import DEFAULT_PASSWORD

pytestmark = pytest.mark.asyncio


def registration(**overrides) -> dict:
    data = {
        "first_name": "Marie",
        "last_name": "Curie",
        "email": "marie.curie@sorbonne.fr",
        "password": "Radium!1898",
        "institution": "University of Paris",
        "department": "Physics",
    }
    data.update(overrides)
    return data


class TestRegister:
    async def test_creates_researcher_and_sends_verification(self, client, session_factory, celery_delay):
        response = await client.post("/api/auth/register", json=registration())

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["token_type"] == "bearer"
        assert body["user"]["role"] == "researcher"
        assert body["user"]["is_email_verified"] is False
        assert "password_hash" not in body["user"]

        kwargs = celery_delay.verification.call_args.kwargs
        assert kwargs["email"] == "marie.curie@sorbonne.fr"
        assert "/verify-email/" in kwargs["verification_url"]

        async with session_factory() as session:
            user = (await session.execute(select(User))).scalar_one()
        assert user.email_verification_token_hash is not None

    async def test_role_cannot_be_chosen(self, client):
        response = await client.post("/api/auth/register", json=registration(role="admin"))

        assert response.status_code == 201
        assert response.json()["user"]["role"] == "researcher"

    async def test_duplicate_email(self, client, db_researcher):
        response = await client.post("/api/auth/register", json=registration(email=db_researcher.email))

        assert response.status_code == 409
        assert response.json()["error"] is True

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"password": "short1!"}, "password"),
            ({"password": "alllowercase1!"}, "password"),
            ({"password": "NoDigits!!"}, "password"),
            ({"password": "NoSymbol123"}, "password"),
            ({"first_name": "M"}, "first_name"),
            ({"last_name": "Curie2"}, "last_name"),
            ({"email": "not-an-email"}, "email"),
            ({"institution": " "}, "institution"),
        ],
    )
    async def test_invalid_input(self, client, overrides, field):
        response = await client.post("/api/auth/register", json=registration(**overrides))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] is True
        assert field in [e["field"] for e in body["errors"]]


class TestLogin:
    async def test_success(self, client, db_researcher):
        response = await client.post(
            "/api/auth/login", json={"email": db_researcher.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == str(db_researcher.id)

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.json()["email"] == db_researcher.email

    async def test_email_is_case_insensitive(self, client, db_researcher):
        response = await client.post(
            "/api/auth/login", json={"email": db_researcher.email.upper(), "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200

    async def test_unknown_email(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "nobody@university.edu", "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "INVALID_CREDENTIALS"
        assert body["message"] == "No account found with that email address."

    async def test_wrong_password(self, client, db_researcher):
        response = await client.post(
            "/api/auth/login", json={"email": db_researcher.email, "password": "Wr0ng!Pass"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Incorrect password. Please try again."

    async def test_inactive_account(self, client, async_session, db_researcher):
        db_researcher.status = UserStatus.INACTIVE
        await async_session.commit()

        response = await client.post(
            "/api/auth/login", json={"email": db_researcher.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 403
        assert response.json()["code"] == "ACCOUNT_INACTIVE"

    async def test_unverified_account_can_log_in(self, client, async_session, db_researcher):
        db_researcher.is_email_verified = False
        await async_session.commit()

        response = await client.post(
            "/api/auth/login", json={"email": db_researcher.email, "password": DEFAULT_PASSWORD}
        )

        assert response.status_code == 200


class TestEmailVerification:
    async def test_verify_link(self, client, async_session, session_factory, db_researcher):
        db_researcher.is_email_verified = False
        token = await issue_verification_email(async_session, db_researcher)
        await async_session.commit()

        response = await client.get(f"/api/auth/verify-email/{token}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        async with session_factory() as session:
            user = await session.get(User, db_researcher.id)
        assert user.is_email_verified is True

        again = await client.get(f"/api/auth/verify-email/{token}")
        assert again.status_code == 400

    async def test_bad_token(self, client):
        response = await client.get("/api/auth/verify-email/garbage")

        assert response.status_code == 400

    async def test_resend_for_unverified(self, client, async_session, db_researcher, celery_delay):
        db_researcher.is_email_verified = False
        await async_session.commit()

        response = await client.post("/api/auth/resend-verification", json={"email": db_researcher.email})

        assert response.status_code == 200
        celery_delay.verification.assert_called_once()

    async def test_resend_does_not_reveal_unknown_email(self, client, celery_delay):
        response = await client.post("/api/auth/resend-verification", json={"email": "ghost@university.edu"})

        assert response.status_code == 200
        assert response.json()["message"].startswith("If an account exists")
        celery_delay.verification.assert_not_called()

    async def test_resend_for_verified(self, client, db_researcher, celery_delay):
        response = await client.post("/api/auth/resend-verification", json={"email": db_researcher.email})

        assert response.json()["message"] == "This email address is already verified."
        celery_delay.verification.assert_not_called()


class TestMe:
    async def test_requires_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_REQUIRED"

    async def test_invalid_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    async def test_returns_role(self, client, db_admin, admin_headers):
        response = await client.get("/api/auth/me", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["role"] == UserRole.ADMIN.value
