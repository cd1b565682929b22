"""
Tests for review submission and the proposal status machine.
"""
from datetime import datetime, timezone
from uuid import uuid4

import pytest
import pytest_asyncio

from backend.core.exceptions import NotFoundError
from backend.models import (
    Grant,
    NotificationPriority,
    NotificationType,
    ProposalStatus,
    ReviewDecision,
    ReviewStatus,
    UserRole,
)
from backend.schemas.reviews import ReviewSubmit
from backend.services import review_service
from tests.fixtures.factories import ProposalFactory, ReviewFactory, UserFactory
from tests.fixtures.helpers import queued_payloads

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def assigned_review(async_session, db_proposal, db_reviewer):
    review = ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer)
    async_session.add(review)
    await async_session.commit()
    return review


def decision(value: ReviewDecision, comments: str = "Solid work.", **scores) -> ReviewSubmit:
    return ReviewSubmit(decision=value, comments=comments, **scores)


class TestSubmitReview:
    """Reviewer decisions."""

    async def test_revisions_requested_moves_to_needs_revision(self, async_session, assigned_review, db_proposal, db_reviewer):
        review, proposal = await review_service.submit_review(
            async_session,
            db_proposal.id,
            db_reviewer,
            decision(ReviewDecision.REVISIONS_REQUESTED, "fix methodology"),
        )

        assert proposal.status == ProposalStatus.NEEDS_REVISION
        assert review.status == ReviewStatus.COMPLETED
        assert review.comments == "fix methodology"
        assert review.review_date is not None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (ReviewDecision.APPROVED, ProposalStatus.APPROVED),
            (ReviewDecision.REJECTED, ProposalStatus.REJECTED),
            (ReviewDecision.REVISIONS_REQUESTED, ProposalStatus.NEEDS_REVISION),
        ],
    )
    async def test_decision_mapping(self, async_session, assigned_review, db_proposal, db_reviewer, value, expected):
        _, proposal = await review_service.submit_review(async_session, db_proposal.id, db_reviewer, decision(value))

        assert proposal.status == expected

    async def test_other_proposals_unchanged(self, async_session, assigned_review, db_proposal, db_reviewer, db_researcher, db_grant):
        """Only the reviewed proposal moves, even under the same grant."""
        sibling = ProposalFactory.create(researcher=db_researcher, grant=db_grant)
        async_session.add(sibling)
        await async_session.commit()

        await review_service.submit_review(
            async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.REJECTED)
        )
        await async_session.refresh(sibling)

        assert sibling.status == ProposalStatus.UNDER_REVIEW

    async def test_approval_bumps_grant_counter_once(self, async_session, assigned_review, db_proposal, db_reviewer, db_grant):
        await review_service.submit_review(async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED))
        await review_service.submit_review(async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED))

        grant = await async_session.get(Grant, db_grant.id)
        assert grant.approved == 1

    async def test_resubmission_overwrites(self, async_session, assigned_review, db_proposal, db_reviewer):
        await review_service.submit_review(
            async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED, score=90)
        )
        review, proposal = await review_service.submit_review(
            async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.REJECTED, "Changed my mind.", score=40)
        )

        assert review.decision == ReviewDecision.REJECTED
        assert review.score == 40
        assert proposal.status == ProposalStatus.REJECTED

    async def test_scores_recorded(self, async_session, assigned_review, db_proposal, db_reviewer):
        review, _ = await review_service.submit_review(
            async_session,
            db_proposal.id,
            db_reviewer,
            decision(ReviewDecision.APPROVED, score=85, innovation_score=9, impact_score=8, feasibility_score=7),
        )

        assert (review.score, review.innovation_score, review.impact_score, review.feasibility_score) == (85, 9, 8, 7)

    async def test_explicit_review_date(self, async_session, assigned_review, db_proposal, db_reviewer):
        when = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

        review, _ = await review_service.submit_review(
            async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED), now=when
        )

        assert review.review_date == when

    async def test_unassigned_reviewer_gets_404(self, async_session, db_proposal, db_reviewer):
        with pytest.raises(NotFoundError) as exc_info:
            await review_service.submit_review(
                async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED)
            )

        assert exc_info.value.detail == "Review assignment not found"

    async def test_unknown_proposal(self, async_session, db_reviewer):
        with pytest.raises(NotFoundError):
            await review_service.submit_review(async_session, uuid4(), db_reviewer, decision(ReviewDecision.APPROVED))

    async def test_notifies_admins_and_researcher(self, async_session, assigned_review, db_proposal, db_reviewer, db_admin, celery_delay):
        await review_service.submit_review(async_session, db_proposal.id, db_reviewer, decision(ReviewDecision.APPROVED))

        payloads = queued_payloads(celery_delay.dispatch)
        by_type = {p["type"]: p for p in payloads}

        assert by_type[NotificationType.REVIEW_COMPLETED.value]["recipient_id"] == str(db_admin.id)
        status_update = by_type[NotificationType.PROPOSAL_STATUS_UPDATE.value]
        assert status_update["recipient_id"] == str(db_proposal.researcher_id)
        assert status_update["priority"] == NotificationPriority.HIGH.value
        assert status_update["data"]["old_status"] == "Under Review"
        assert status_update["data"]["new_status"] == "Approved"


class TestAssignedReviews:
    async def test_lists_only_callers_reviews(self, async_session, assigned_review, db_reviewer, db_researcher, db_grant):
        other_reviewer = UserFactory.create(role=UserRole.REVIEWER)
        other_proposal = ProposalFactory.create(researcher=db_researcher, grant=db_grant)
        async_session.add_all([other_reviewer, other_proposal])
        await async_session.flush()
        async_session.add(ReviewFactory.create(proposal=other_proposal, reviewer=other_reviewer))
        await async_session.commit()

        reviews = await review_service.list_assigned_reviews(async_session, db_reviewer.id)

        assert [r.id for r in reviews] == [assigned_review.id]

    async def test_get_assignment(self, async_session, assigned_review, db_proposal, db_reviewer):
        review = await review_service.get_assignment(async_session, db_proposal.id, db_reviewer.id)

        assert review.id == assigned_review.id
        assert review.status == ReviewStatus.PENDING

