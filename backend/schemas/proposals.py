"""
Proposal schemas.

Submission arrives as multipart form data and is parsed by the router, so only
response and assignment models live here.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.models import GrantCategory, ProposalStatus, ReviewStatus
from backend.schemas.users import UserSummary


class ProposalResponse(BaseModel):
    id: UUID
    title: str
    abstract: str
    objectives: str
    methodology: str
    timeline: str
    expected_outcomes: Optional[str] = None
    status: ProposalStatus
    date_submitted: Optional[datetime] = None
    deadline: datetime
    funding: float
    category: GrantCategory
    progress: int

    personnel_costs: float
    equipment_costs: float
    materials_costs: float
    travel_costs: float
    other_costs: float

    proposal_document: str
    cv_resume: Optional[str] = None
    additional_documents: list[str] = Field(default_factory=list)

    recommended_score: Optional[int] = None
    recommendation: Optional[str] = None

    grant_id: UUID
    researcher_id: UUID
    reviewer_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProposalWithResearcher(ProposalResponse):
    """Admin listing of a grant's proposals."""

    researcher: UserSummary


class AssignReviewerRequest(BaseModel):
    reviewer_id: UUID = Field(..., description="User id of a reviewer-role account")


class AssignReviewerResponse(BaseModel):
    message: str
    proposal: ProposalResponse
    review_id: UUID
    review_status: ReviewStatus
    created: bool = Field(..., description="False when the pair already had a review")
