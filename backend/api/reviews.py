"""
Review API Endpoints
Reviewer decisions and assigned-review listings.
"""
import logging
from uuid import UUID

from fastapi import APIRouter

from backend.api.deps import AsyncSessionDep, ReviewerUser
from backend.schemas.reviews import AssignedReviewResponse, ReviewResponse, ReviewSubmit, ReviewSubmitResponse
from backend.services import review_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


@router.get(
    "/assigned",
    response_model=list[AssignedReviewResponse],
    summary="List my assigned reviews",
)
async def list_assigned_reviews(db: AsyncSessionDep, reviewer: ReviewerUser) -> list[AssignedReviewResponse]:
    reviews = await review_service.list_assigned_reviews(db, reviewer.id)
    return [AssignedReviewResponse.model_validate(r) for r in reviews]


@router.get(
    "/proposal/{proposal_id}",
    response_model=AssignedReviewResponse,
    summary="Get my review for a proposal",
)
async def get_review_for_proposal(
    proposal_id: UUID,
    db: AsyncSessionDep,
    reviewer: ReviewerUser,
) -> AssignedReviewResponse:
    review = await review_service.get_assignment(db, proposal_id, reviewer.id)
    return AssignedReviewResponse.model_validate(review)


@router.post(
    "/{proposal_id}",
    response_model=ReviewSubmitResponse,
    summary="Submit a review decision",
)
async def submit_review(
    proposal_id: UUID,
    data: ReviewSubmit,
    db: AsyncSessionDep,
    reviewer: ReviewerUser,
) -> ReviewSubmitResponse:
    """
    Complete the caller's review of a proposal.

    - **Approved** moves the proposal to Approved
    - **Rejected** moves it to Rejected
    - **Revisions Requested** moves it to Needs Revision
    """
    review, proposal = await review_service.submit_review(db, proposal_id, reviewer, data)
    logger.info(f"Review {review.id} completed with decision {data.decision.value}")
    return ReviewSubmitResponse(
        message="Review submitted successfully.",
        review=ReviewResponse.model_validate(review),
        proposal_status=proposal.status.value,
    )
