"""
Proposal lifecycle: submission, reviewer assignment and the status machine
driven by review decisions.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.models import (
    Grant,
    Proposal,
    ProposalStatus,
    Review,
    ReviewDecision,
    ReviewStatus,
    User,
    UserRole,
)
from backend.services.notification_service import notify_proposal_submitted, notify_review_assigned
from backend.services.storage import (
    ADDITIONAL_FOLDER,
    CV_FOLDER,
    PROPOSALS_FOLDER,
    S3Storage,
    UploadedFile,
)

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("title", "abstract", "objectives", "methodology", "timeline", "grant")
BUDGET_FIELDS = ("personnel_costs", "equipment_costs", "materials_costs", "travel_costs", "other_costs")
CENT = Decimal("0.01")

# Review decision -> proposal status. The only transitions a proposal has.
DECISION_TRANSITIONS: dict[ReviewDecision, ProposalStatus] = {
    ReviewDecision.APPROVED: ProposalStatus.APPROVED,
    ReviewDecision.REJECTED: ProposalStatus.REJECTED,
    ReviewDecision.REVISIONS_REQUESTED: ProposalStatus.NEEDS_REVISION,
}


@dataclass
class ProposalSubmission:
    """Raw multipart submission, before any validation."""

    title: str = ""
    abstract: str = ""
    objectives: str = ""
    methodology: str = ""
    timeline: str = ""
    grant: str = ""
    expected_outcomes: Optional[str] = None
    personnel_costs: Optional[str] = None
    equipment_costs: Optional[str] = None
    materials_costs: Optional[str] = None
    travel_costs: Optional[str] = None
    other_costs: Optional[str] = None
    proposal_document: Optional[UploadedFile] = None
    cv_resume: Optional[UploadedFile] = None
    additional_documents: list[UploadedFile] = field(default_factory=list)


# =============================================================================
# Recommendation score
# =============================================================================

SCORE_KEYWORDS = ("innovation", "impact", "feasibility")
STRUCTURE_SECTIONS = ("introduction", "methodology", "outcomes", "impact", "budget")
DOMAIN_KEYWORDS = ("renewable", "solar", "energy")
MAX_SPELLING_ISSUES = 5

_REPEATED_WORD = re.compile(r"\b(\w+)\s+\1\b", re.IGNORECASE)


def count_spelling_issues(text: str) -> int:
    """Crude proofreading signal: immediately repeated words ("the the")."""
    return len(_REPEATED_WORD.findall(text))


def recommendation_label(score: int) -> str:
    if score >= 60:
        return "Recommended for Acceptance"
    if score >= 50:
        return "Borderline/Needs Revision"
    return "Not Recommended for Acceptance"


def compute_recommendation(abstract: str, requested: Decimal, grant_funding: Decimal) -> tuple[int, str]:
    """
    Heuristic screening score (0-100) for admins triaging new submissions.

    - 10 per key term (innovation, impact, feasibility)
    - 20 when the requested amount fits the grant
    - 10 for an abstract of at least 200 words
    - 10 when sentences average under 20 words
    - 2 per recognised section keyword, at most 10
    - 10 for domain keywords
    - 10 when proofreading finds at most five issues
    """
    text = abstract.lower()
    score = sum(10 for keyword in SCORE_KEYWORDS if keyword in text)

    if requested <= grant_funding:
        score += 20

    word_count = len(abstract.split())
    if word_count >= 200:
        score += 10

    sentences = [s for s in re.split(r"[.!?]", abstract) if s.strip()]
    average_sentence = word_count / len(sentences) if sentences else word_count
    if average_sentence < 20:
        score += 10

    score += min(sum(2 for section in STRUCTURE_SECTIONS if section in text), 10)

    if any(keyword in text for keyword in DOMAIN_KEYWORDS):
        score += 10

    if count_spelling_issues(abstract) <= MAX_SPELLING_ISSUES:
        score += 10

    score = min(score, 100)
    return score, recommendation_label(score)


# =============================================================================
# Submission
# =============================================================================


def _parse_amount(name: str, raw: Optional[str]) -> Decimal:
    if raw is None or not str(raw).strip():
        return Decimal("0")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount for {name}: must be a number.")
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Invalid amount for {name}: must be a non-negative number.")
    if value != value.quantize(CENT):
        raise ValidationError(f"Invalid amount for {name}: at most 2 decimal places allowed.")
    return value


def format_money(amount: Decimal) -> str:
    """``Decimal("4000")`` -> ``"$4,000"``; cents are shown only when present."""
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


async def _load_grant(db: AsyncSession, raw_id: str) -> Optional[Grant]:
    try:
        grant_id = UUID(str(raw_id).strip())
    except ValueError:
        return None
    return await db.get(Grant, grant_id)


async def submit_proposal(
    db: AsyncSession,
    researcher: User,
    submission: ProposalSubmission,
    storage: S3Storage,
    now: Optional[datetime] = None,
) -> Proposal:
    """
    Validate and store a new proposal.

    Every check runs before any file is uploaded, so a rejected submission
    leaves nothing behind. The proposal enters "Under Review" directly and
    takes its deadline, funding and category from the grant as it is now.

    Raises:
        ValidationError: missing fields or document, unknown grant, or a budget
            that does not add up to exactly the grant's funding.
    """
    missing = [name for name in REQUIRED_FIELDS if not (getattr(submission, name) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if submission.proposal_document is None:
        raise ValidationError("Proposal document is required.")

    costs = {name: _parse_amount(name, getattr(submission, name)) for name in BUDGET_FIELDS}
    budget_total = sum(costs.values(), Decimal("0"))

    grant = await _load_grant(db, submission.grant)
    if grant is None:
        raise ValidationError("Selected grant not found.")

    if budget_total == 0:
        raise ValidationError("Total budget must be greater than zero.")

    if budget_total != grant.funding:
        raise ValidationError(
            f"Budget mismatch: total budget ({format_money(budget_total)}) must equal "
            f"the grant funding amount ({format_money(grant.funding)})."
        )

    # Sequential on purpose: each upload completes before the next starts
    document_url = await storage.upload(submission.proposal_document, PROPOSALS_FOLDER)
    cv_url = await storage.upload(submission.cv_resume, CV_FOLDER) if submission.cv_resume else None
    additional_urls = []
    for document in submission.additional_documents:
        additional_urls.append(await storage.upload(document, ADDITIONAL_FOLDER))

    now = now or datetime.now(timezone.utc)
    score, recommendation = compute_recommendation(submission.abstract, budget_total, grant.funding)

    proposal = Proposal(
        title=submission.title.strip(),
        abstract=submission.abstract.strip(),
        objectives=submission.objectives.strip(),
        methodology=submission.methodology.strip(),
        timeline=submission.timeline.strip(),
        expected_outcomes=(submission.expected_outcomes or "").strip() or None,
        status=ProposalStatus.UNDER_REVIEW,
        date_submitted=now,
        deadline=grant.deadline,
        funding=grant.funding,
        category=grant.category,
        progress=0,
        proposal_document=document_url,
        cv_resume=cv_url,
        additional_documents=additional_urls,
        recommended_score=score,
        recommendation=recommendation,
        researcher_id=researcher.id,
        grant_id=grant.id,
        **costs,
    )
    db.add(proposal)
    grant.applicants = (grant.applicants or 0) + 1
    await db.flush()
    await db.refresh(proposal)

    logger.info(
        "proposal_submitted",
        proposal_id=str(proposal.id),
        grant_id=str(grant.id),
        researcher_id=str(researcher.id),
        recommended_score=score,
    )

    await notify_proposal_submitted(db, proposal, researcher)
    return proposal


# =============================================================================
# Queries
# =============================================================================


async def get_proposal(db: AsyncSession, proposal_id: UUID) -> Proposal:
    proposal = await db.get(Proposal, proposal_id)
    if proposal is None:
        raise NotFoundError("Proposal", str(proposal_id))
    return proposal


async def list_researcher_proposals(db: AsyncSession, researcher_id: UUID) -> list[Proposal]:
    result = await db.execute(
        select(Proposal).where(Proposal.researcher_id == researcher_id).order_by(Proposal.created_at.desc())
    )
    return list(result.scalars().all())


async def get_researcher_proposal(db: AsyncSession, researcher_id: UUID, proposal_id: UUID) -> Proposal:
    result = await db.execute(
        select(Proposal).where(Proposal.id == proposal_id, Proposal.researcher_id == researcher_id)
    )
    proposal = result.scalar_one_or_none()
    if proposal is None:
        raise NotFoundError("Proposal", str(proposal_id))
    return proposal


async def list_grant_proposals(db: AsyncSession, grant_id: UUID) -> list[Proposal]:
    result = await db.execute(
        select(Proposal).where(Proposal.grant_id == grant_id).order_by(Proposal.created_at.desc())
    )
    return list(result.scalars().all())


async def get_award_letter_proposal(db: AsyncSession, proposal_id: UUID, user: User) -> Proposal:
    """Approved proposal the caller may download an award letter for."""
    proposal = await get_proposal(db, proposal_id)
    if user.role != UserRole.ADMIN and proposal.researcher_id != user.id:
        raise AuthorizationError("You can only download award letters for your own proposals.")
    if proposal.status != ProposalStatus.APPROVED:
        raise ValidationError("Award letters are only available for approved proposals.")
    return proposal


# =============================================================================
# Reviewer assignment
# =============================================================================


async def assign_reviewer(
    db: AsyncSession,
    proposal_id: UUID,
    reviewer_id: UUID,
    admin: User,
) -> tuple[Proposal, Review, bool]:
    """
    Point the proposal at ``reviewer_id`` and make sure a Review exists.

    The proposal status is left alone. An existing review for the same pair
    is returned untouched, whatever its state, so repeating the call is a
    no-op. The (proposal, reviewer) unique constraint backs the lookup for
    concurrent assignments.

    Returns:
        (proposal, review, created)
    """
    proposal = await get_proposal(db, proposal_id)

    reviewer = await db.get(User, reviewer_id)
    if reviewer is None:
        raise ValidationError("Reviewer not found.")
    if reviewer.role != UserRole.REVIEWER:
        raise ValidationError("Selected user is not a reviewer.")

    proposal.reviewer_id = reviewer.id
    await db.flush()

    review = await _find_review(db, proposal.id, reviewer.id)
    created = False
    if review is None:
        try:
            async with db.begin_nested():
                review = Review(
                    proposal_id=proposal.id,
                    reviewer_id=reviewer.id,
                    status=ReviewStatus.PENDING,
                )
                db.add(review)
            created = True
        except IntegrityError:
            # Lost the race to a concurrent assignment of the same pair
            review = await _find_review(db, proposal.id, reviewer.id)

    await db.flush()
    await db.refresh(proposal)

    logger.info(
        "reviewer_assigned",
        proposal_id=str(proposal.id),
        reviewer_id=str(reviewer.id),
        review_created=created,
    )
    if created:
        notify_review_assigned(proposal, reviewer.id, admin)

    return proposal, review, created


async def _find_review(db: AsyncSession, proposal_id: UUID, reviewer_id: UUID) -> Optional[Review]:
    result = await db.execute(
        select(Review).where(Review.proposal_id == proposal_id, Review.reviewer_id == reviewer_id)
    )
    return result.scalar_one_or_none()


# =============================================================================
# Status machine
# =============================================================================


async def apply_review_decision(db: AsyncSession, proposal: Proposal, decision: ReviewDecision) -> ProposalStatus:
    """
    Move ``proposal`` to the status that ``decision`` maps to.

    Only the given proposal changes. A newly approved proposal also bumps its
    grant's approved counter.

    Returns:
        The status the proposal had before the decision.
    """
    old_status = proposal.status
    new_status = DECISION_TRANSITIONS[decision]
    proposal.status = new_status

    if new_status == ProposalStatus.APPROVED and old_status != ProposalStatus.APPROVED:
        grant = await db.get(Grant, proposal.grant_id)
        if grant is not None:
            grant.approved = (grant.approved or 0) + 1

    await db.flush()
    logger.info(
        "proposal_status_changed",
        proposal_id=str(proposal.id),
        old_status=old_status.value,
        new_status=new_status.value,
    )
    return old_status
