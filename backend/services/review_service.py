"""
Reviewer-side operations: completing a review and listing assignments.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import NotFoundError
from backend.models import Proposal, Review, ReviewStatus, User
from backend.schemas.reviews import ReviewSubmit
from backend.services.notification_service import notify_review_completed
from backend.services.proposal_service import apply_review_decision

logger = structlog.get_logger(__name__)


async def get_assignment(db: AsyncSession, proposal_id: UUID, reviewer_id: UUID) -> Review:
    """The caller's review for a proposal; 404 when they were never assigned."""
    result = await db.execute(
        select(Review).where(Review.proposal_id == proposal_id, Review.reviewer_id == reviewer_id)
    )
    review = result.scalar_one_or_none()
    if review is None:
        raise NotFoundError("Review assignment")
    return review


async def submit_review(
    db: AsyncSession,
    proposal_id: UUID,
    reviewer: User,
    data: ReviewSubmit,
    now: Optional[datetime] = None,
) -> tuple[Review, Proposal]:
    """
    Record the reviewer's decision and move the proposal accordingly.

    Submitting again overwrites the earlier decision and re-applies the
    status mapping. Notifications to admins and the researcher are
    best-effort.
    """
    review = await get_assignment(db, proposal_id, reviewer.id)

    review.decision = data.decision
    review.comments = data.comments
    review.score = data.score
    review.innovation_score = data.innovation_score
    review.impact_score = data.impact_score
    review.feasibility_score = data.feasibility_score
    review.review_date = now or datetime.now(timezone.utc)
    review.status = ReviewStatus.COMPLETED
    await db.flush()

    proposal = await db.get(Proposal, proposal_id)
    if proposal is None:
        raise NotFoundError("Proposal", str(proposal_id))

    old_status = await apply_review_decision(db, proposal, data.decision)
    await db.refresh(review)

    logger.info(
        "review_submitted",
        review_id=str(review.id),
        proposal_id=str(proposal_id),
        reviewer_id=str(reviewer.id),
        decision=data.decision.value,
    )

    await notify_review_completed(db, proposal, review, reviewer, old_status)
    return review, proposal


async def list_assigned_reviews(db: AsyncSession, reviewer_id: UUID) -> list[Review]:
    """Reviews assigned to ``reviewer_id``, newest assignment first."""
    result = await db.execute(
        select(Review).where(Review.reviewer_id == reviewer_id).order_by(Review.created_at.desc())
    )
    return list(result.scalars().all())
