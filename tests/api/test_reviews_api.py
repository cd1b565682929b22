"""
Tests for reviewer endpoints.
"""
import pytest
from sqlalchemy import select

from backend.models import Grant, Proposal, ProposalStatus
from tests.fixtures.factories import ReviewFactory

pytestmark = pytest.mark.asyncio


@pytest.fixture
def decision_body() -> dict:
    return {
        "decision": "Approved",
        "comments": "Clear objectives and a realistic budget.",
        "score": 88,
        "innovation_score": 8,
        "impact_score": 9,
        "feasibility_score": 7,
    }


class TestAssignedReviews:
    async def test_lists_with_proposal(self, client, async_session, db_proposal, db_reviewer, reviewer_headers):
        async_session.add(ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer))
        await async_session.commit()

        response = await client.get("/api/reviews/assigned", headers=reviewer_headers)

        assert response.status_code == 200
        reviews = response.json()
        assert len(reviews) == 1
        assert reviews[0]["status"] == "Pending"
        assert reviews[0]["proposal"]["title"] == "Solar Storage Study"
        assert reviews[0]["proposal"]["researcher"]["first_name"] == "Rita"

    async def test_researcher_forbidden(self, client, researcher_headers):
        response = await client.get("/api/reviews/assigned", headers=researcher_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PRIVILEGES"

    async def test_review_for_proposal(self, client, async_session, db_proposal, db_reviewer, reviewer_headers):
        async_session.add(ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer))
        await async_session.commit()

        found = await client.get(f"/api/reviews/proposal/{db_proposal.id}", headers=reviewer_headers)

        assert found.status_code == 200
        assert found.json()["proposal_id"] == str(db_proposal.id)

    async def test_review_for_unassigned_proposal(self, client, db_proposal, reviewer_headers):
        response = await client.get(f"/api/reviews/proposal/{db_proposal.id}", headers=reviewer_headers)

        assert response.status_code == 404


class TestSubmitReview:
    async def test_approve(
        self, client, async_session, session_factory, db_proposal, db_reviewer, reviewer_headers, decision_body
    ):
        async_session.add(ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer))
        await async_session.commit()

        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=reviewer_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["proposal_status"] == ProposalStatus.APPROVED.value
        assert body["review"]["status"] == "Completed"
        assert body["review"]["decision"] == "Approved"
        assert body["review"]["score"] == 88
        assert body["review"]["review_date"] is not None

        async with session_factory() as session:
            proposal = await session.get(Proposal, db_proposal.id)
            grant = await session.get(Grant, db_proposal.grant_id)
        assert proposal.status == ProposalStatus.APPROVED
        assert grant.approved == 1

    async def test_revisions_requested(
        self, client, async_session, db_proposal, db_reviewer, reviewer_headers, decision_body
    ):
        async_session.add(ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer))
        await async_session.commit()
        decision_body["decision"] = "Revisions Requested"

        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=reviewer_headers)

        assert response.json()["proposal_status"] == ProposalStatus.NEEDS_REVISION.value

    async def test_not_assigned(self, client, db_proposal, reviewer_headers, decision_body, session_factory):
        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=reviewer_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Review assignment not found"
        async with session_factory() as session:
            proposal = await session.get(Proposal, db_proposal.id)
        assert proposal.status == ProposalStatus.UNDER_REVIEW

    @pytest.mark.parametrize(
        "changes",
        [{"decision": "Maybe"}, {"comments": "   "}, {"score": 101}, {"impact_score": 11}],
    )
    async def test_invalid_decision_body(
        self, client, async_session, db_proposal, db_reviewer, reviewer_headers, decision_body, changes
    ):
        async_session.add(ReviewFactory.create(proposal=db_proposal, reviewer=db_reviewer))
        await async_session.commit()
        decision_body.update(changes)

        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=reviewer_headers)

        assert response.status_code == 400

    async def test_admin_cannot_review(self, client, db_proposal, admin_headers, decision_body):
        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=admin_headers)

        assert response.status_code == 403

    async def test_full_flow_from_assignment(
        self, client, session_factory, db_proposal, db_reviewer, admin_headers, reviewer_headers, decision_body
    ):
        assign = await client.put(
            f"/api/proposals/{db_proposal.id}/assign-reviewer",
            json={"reviewer_id": str(db_reviewer.id)},
            headers=admin_headers,
        )
        assert assign.status_code == 200
        decision_body["decision"] = "Rejected"

        response = await client.post(f"/api/reviews/{db_proposal.id}", json=decision_body, headers=reviewer_headers)

        assert response.json()["proposal_status"] == ProposalStatus.REJECTED.value
        async with session_factory() as session:
            statuses = (await session.execute(select(Proposal.status))).scalars().all()
        assert statuses == [ProposalStatus.REJECTED]
