"""
Reporting and analytics schemas.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.models import ReportStatus


class GenerateReportRequest(BaseModel):
    month: int = Field(..., description="Calendar month, 1-12")
    year: int = Field(..., description="Four digit year")


class ReportResponse(BaseModel):
    id: UUID
    title: str
    period: str
    month: int
    year: int
    total_proposals: int
    approved: int
    rejected: int
    pending: int
    total_funding: str
    average_score: float
    active_grants: int
    closed_grants: int
    generated_date: str
    status: ReportStatus
    created_at: datetime

    class Config:
        from_attributes = True


class MonthlyBucket(BaseModel):
    month: str = Field(..., description='Short month label, e.g. "Jan"')
    proposals: int = 0
    approved: int = 0
    funding: float = Field(0.0, description="Funding of approved proposals in the month")


class CategoryBucket(BaseModel):
    name: str
    value: int = Field(..., description="Number of proposals")
    funding: float
    color: str


class AnalyticsResponse(BaseModel):
    year: int
    monthly_data: list[MonthlyBucket]
    category_data: list[CategoryBucket]


class ReviewerPerformance(BaseModel):
    reviewer_id: UUID
    name: str
    email: str
    expertise: Optional[str] = None
    reviews_completed: int
    total_assigned: int
    average_score: float
    average_turnaround_days: float
    on_time_rate: float = Field(..., description="Percentage of completed reviews finished by the proposal deadline")


class UserStatsResponse(BaseModel):
    total_users: int
    by_role: dict[str, int]
    by_status: dict[str, int]
    verified: int
    unverified: int
    new_this_month: int


class CategoryStats(BaseModel):
    category: str
    grants: int
    funding: float


class GrantStatsResponse(BaseModel):
    total_grants: int
    active_grants: int
    closed_grants: int
    total_funding: float
    total_applicants: int
    total_approved: int
    by_category: list[CategoryStats]
