"""
Tests for grant management and deadline reconciliation.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from backend.core.exceptions import ConflictError, NotFoundError
from backend.models import Grant, GrantCategory, GrantStatus, NotificationType
from backend.schemas.grants import GrantCreate, GrantUpdate
from backend.services import grant_service
from tests.fixtures.helpers import queued_payloads
from tests.fixtures.factories import GrantFactory, ProposalFactory

pytestmark = pytest.mark.asyncio


class TestCloseExpiredGrants:
    """Deadline reconciliation."""

    async def test_past_deadline_grant_is_closed_on_listing(self, async_session):
        """A 2020 grant still marked Active comes back Closed."""
        grant = GrantFactory.create(
            funding=Decimal("10000"),
            deadline=datetime(2020, 1, 1, tzinfo=timezone.utc),
            status=GrantStatus.ACTIVE,
        )
        async_session.add(grant)
        await async_session.commit()

        grants = await grant_service.list_grants(async_session)

        assert len(grants) == 1
        assert grants[0].status == GrantStatus.CLOSED

    async def test_reconciliation_is_idempotent(self, async_session):
        """Repeated calls close nothing new."""
        async_session.add_all([GrantFactory.create_expired(days_ago=3), GrantFactory.create_expired(days_ago=1)])
        await async_session.commit()

        first = await grant_service.close_expired_grants(async_session)
        second = await grant_service.close_expired_grants(async_session)

        assert first == 2
        assert second == 0

    async def test_future_deadline_stays_active(self, async_session, db_grant):
        closed = await grant_service.close_expired_grants(async_session)

        assert closed == 0
        refreshed = await async_session.get(Grant, db_grant.id)
        await async_session.refresh(refreshed)
        assert refreshed.status == GrantStatus.ACTIVE

    async def test_uses_supplied_clock(self, async_session, db_grant):
        """A clock past the deadline closes an otherwise current grant."""
        later = db_grant.deadline + timedelta(seconds=1)

        assert await grant_service.close_expired_grants(async_session, now=later) == 1


class TestGrantCrud:
    """Create, update and delete."""

    async def test_create_notifies_researchers(self, async_session, db_researcher, db_admin, celery_delay):
        data = GrantCreate(
            title="Soil Health Initiative",
            description="Funding for soil studies.",
            category=GrantCategory.AGRICULTURE,
            funding=Decimal("25000"),
            deadline=datetime.now(timezone.utc) + timedelta(days=60),
            requirements="Field work required.",
        )

        grant = await grant_service.create_grant(async_session, data, db_admin)

        assert grant.status == GrantStatus.ACTIVE
        assert grant.applicants == 0
        payloads = queued_payloads(celery_delay.dispatch)
        assert [p["recipient_id"] for p in payloads] == [str(db_researcher.id)]
        assert payloads[0]["type"] == NotificationType.NEW_GRANT.value

    async def test_update_applies_only_given_fields(self, async_session, db_grant):
        updated = await grant_service.update_grant(async_session, db_grant.id, GrantUpdate(funding=Decimal("12000")))

        assert updated.funding == Decimal("12000")
        assert updated.title == "Clean Energy Fund"

    async def test_update_unknown_grant(self, async_session):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            await grant_service.update_grant(async_session, uuid4(), GrantUpdate(title="Nothing"))

    async def test_delete_refused_when_proposals_exist(self, async_session, db_proposal):
        with pytest.raises(ConflictError):
            await grant_service.delete_grant(async_session, db_proposal.grant_id)

    async def test_delete_grant(self, async_session, db_grant):
        await grant_service.delete_grant(async_session, db_grant.id)
        await async_session.commit()

        result = await async_session.execute(select(Grant))
        assert result.scalars().all() == []

    async def test_proposal_snapshot_survives_grant_edit(self, async_session, db_researcher, db_grant):
        """Proposals keep deadline, funding and category from submission time."""
        proposal = ProposalFactory.create(researcher=db_researcher, grant=db_grant)
        async_session.add(proposal)
        await async_session.commit()
        original_deadline = proposal.deadline

        await grant_service.update_grant(
            async_session,
            db_grant.id,
            GrantUpdate(
                funding=Decimal("50000"),
                category=GrantCategory.HEALTH,
                deadline=original_deadline + timedelta(days=90),
            ),
        )
        await async_session.refresh(proposal)

        assert proposal.funding == Decimal("10000")
        assert proposal.category == GrantCategory.TECHNOLOGY
        assert proposal.deadline == original_deadline
