"""
Review schemas for reviewer decisions and assigned-review listings.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from backend.models import ReviewDecision, ReviewStatus
from backend.schemas.proposals import ProposalResponse
from backend.schemas.users import UserSummary


class ReviewSubmit(BaseModel):
    """Reviewer decision. Score is optional; sub-scores are 0-10."""

    decision: ReviewDecision = Field(..., description="Approved, Rejected or Revisions Requested")
    comments: str = Field(..., description="Reviewer comments")
    score: Optional[float] = Field(None, ge=0, le=100, description="Overall score")
    innovation_score: Optional[float] = Field(None, ge=0, le=10)
    impact_score: Optional[float] = Field(None, ge=0, le=10)
    feasibility_score: Optional[float] = Field(None, ge=0, le=10)

    @field_validator("comments")
    @classmethod
    def comments_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Comments are required")
        return v.strip()


class ReviewResponse(BaseModel):
    id: UUID
    proposal_id: UUID
    reviewer_id: UUID
    status: ReviewStatus
    decision: Optional[ReviewDecision] = None
    score: Optional[float] = None
    innovation_score: Optional[float] = None
    impact_score: Optional[float] = None
    feasibility_score: Optional[float] = None
    comments: Optional[str] = None
    review_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignedProposal(ProposalResponse):
    researcher: UserSummary


class AssignedReviewResponse(ReviewResponse):
    """Review together with the proposal under evaluation."""

    proposal: AssignedProposal


class ReviewSubmitResponse(BaseModel):
    message: str
    review: ReviewResponse
    proposal_status: str
