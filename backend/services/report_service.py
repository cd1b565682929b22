"""
Reporting and analytics for administrators.

Monthly windows are half-open UTC calendar months. A proposal belongs to a
month when either its submission date or its creation date falls inside.
"""
import csv
import io
import math
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func, or_, and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import ValidationError
from backend.models import (
    Grant,
    GrantStatus,
    Proposal,
    ProposalStatus,
    Report,
    ReportStatus,
    Review,
    ReviewStatus,
    User,
    UserRole,
    UserStatus,
)
from backend.schemas.reports import (
    AnalyticsResponse,
    CategoryBucket,
    CategoryStats,
    GrantStatsResponse,
    MonthlyBucket,
    ReviewerPerformance,
    UserStatsResponse,
)
from backend.services.proposal_service import format_money

logger = structlog.get_logger(__name__)

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
CATEGORY_COLORS = (
    "#3B82F6", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6",
    "#EC4899", "#06B6D4", "#84CC16", "#F97316", "#6366F1",
)
PENDING_STATUSES = (ProposalStatus.UNDER_REVIEW, ProposalStatus.NEEDS_REVISION)
MS_PER_DAY = 86_400_000


def month_window(year: int, month: int) -> tuple[datetime, datetime]:
    """``[first day of month, first day of next month)`` in UTC."""
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def _in_window(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    return value is not None and start <= value < end


def _proposal_in_window(proposal: Proposal, start: datetime, end: datetime) -> bool:
    return _in_window(proposal.date_submitted, start, end) or _in_window(proposal.created_at, start, end)


def _window_filter(start: datetime, end: datetime):
    return or_(
        and_(Proposal.date_submitted >= start, Proposal.date_submitted < end),
        and_(Proposal.created_at >= start, Proposal.created_at < end),
    )


# =============================================================================
# Monthly report
# =============================================================================


async def generate_report(
    db: AsyncSession,
    month: int,
    year: int,
    now: Optional[datetime] = None,
) -> Report:
    """
    Compute and persist the snapshot for one calendar month.

    Grant counts use their own predicates: active means not closed with a
    deadline on or after the window start, closed means closed with a
    deadline before the window end. The two are not complements. Every call
    stores a new Final report, even for a period that already has one.
    """
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12.")
    if not isinstance(year, int) or not 2000 <= year <= 2100:
        raise ValidationError("Year must be between 2000 and 2100.")

    start, end = month_window(year, month)
    now = now or datetime.now(timezone.utc)

    result = await db.execute(select(Proposal).where(_window_filter(start, end)))
    proposals = list(result.scalars().all())

    approved = [p for p in proposals if p.status == ProposalStatus.APPROVED]
    rejected = [p for p in proposals if p.status == ProposalStatus.REJECTED]
    pending = [p for p in proposals if p.status in PENDING_STATUSES]
    total_funding = sum((p.funding for p in approved), Decimal("0"))

    average_score = 0.0
    if proposals:
        score_result = await db.execute(
            select(Review.score).where(
                Review.proposal_id.in_([p.id for p in proposals]),
                Review.status == ReviewStatus.COMPLETED,
                Review.score.is_not(None),
            )
        )
        scores = list(score_result.scalars().all())
        if scores:
            average_score = round(sum(scores) / len(scores), 1)

    active_grants = await _count(
        db,
        select(func.count(Grant.id)).where(Grant.status != GrantStatus.CLOSED, Grant.deadline >= start),
    )
    closed_grants = await _count(
        db,
        select(func.count(Grant.id)).where(Grant.status == GrantStatus.CLOSED, Grant.deadline < end),
    )

    report = Report(
        title=f"Monthly Report - {MONTH_NAMES[month - 1]} {year}",
        period=f"{year:04d}-{month:02d}",
        month=month,
        year=year,
        total_proposals=len(proposals),
        approved=len(approved),
        rejected=len(rejected),
        pending=len(pending),
        total_funding=format_money(total_funding),
        average_score=average_score,
        active_grants=active_grants,
        closed_grants=closed_grants,
        generated_date=now.strftime("%Y-%m-%d"),
        status=ReportStatus.FINAL,
    )
    db.add(report)
    await db.flush()
    await db.refresh(report)

    logger.info(
        "report_generated",
        report_id=str(report.id),
        period=report.period,
        total_proposals=report.total_proposals,
    )
    return report


async def _count(db: AsyncSession, query) -> int:
    result = await db.execute(query)
    return result.scalar_one() or 0


async def list_reports(db: AsyncSession) -> list[Report]:
    result = await db.execute(select(Report).order_by(Report.created_at.desc()))
    return list(result.scalars().all())


# =============================================================================
# Analytics
# =============================================================================


async def get_analytics(db: AsyncSession, now: Optional[datetime] = None) -> AnalyticsResponse:
    """
    Monthly proposal activity for the current year plus a category breakdown
    across all proposals.

    When the current year has no activity at all, every proposal is shown in
    the current month so the chart is not empty.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(Proposal).order_by(Proposal.created_at.asc()))
    proposals = list(result.scalars().all())

    monthly: list[MonthlyBucket] = []
    for month in range(1, 13):
        start, end = month_window(now.year, month)
        in_month = [p for p in proposals if _proposal_in_window(p, start, end)]
        monthly.append(_bucket(MONTH_LABELS[month - 1], in_month))

    if proposals and all(bucket.proposals == 0 for bucket in monthly):
        monthly[now.month - 1] = _bucket(MONTH_LABELS[now.month - 1], proposals)

    categories: dict[str, dict] = {}
    for proposal in proposals:
        name = proposal.category.value
        entry = categories.setdefault(name, {"value": 0, "funding": Decimal("0")})
        entry["value"] += 1
        entry["funding"] += proposal.funding

    category_data = [
        CategoryBucket(
            name=name,
            value=entry["value"],
            funding=float(entry["funding"]),
            color=CATEGORY_COLORS[index % len(CATEGORY_COLORS)],
        )
        for index, (name, entry) in enumerate(categories.items())
    ]

    return AnalyticsResponse(year=now.year, monthly_data=monthly, category_data=category_data)


def _bucket(label: str, proposals: list[Proposal]) -> MonthlyBucket:
    approved = [p for p in proposals if p.status == ProposalStatus.APPROVED]
    return MonthlyBucket(
        month=label,
        proposals=len(proposals),
        approved=len(approved),
        funding=float(sum((p.funding for p in approved), Decimal("0"))),
    )


async def get_reviewer_performance(db: AsyncSession) -> list[ReviewerPerformance]:
    """
    Per-reviewer workload and quality figures.

    Turnaround is measured in whole days, rounded up, from submission (or
    creation) to the review date; negative spans are ignored. On-time rate is
    the percentage of completed reviews dated no later than the proposal
    deadline.
    """
    reviewers_result = await db.execute(
        select(User).where(User.role == UserRole.REVIEWER).order_by(User.last_name, User.first_name)
    )
    reviewers = list(reviewers_result.scalars().all())
    if not reviewers:
        return []

    reviews_result = await db.execute(
        select(Review).where(Review.reviewer_id.in_([r.id for r in reviewers]))
    )
    by_reviewer: dict = {}
    for review in reviews_result.scalars().all():
        by_reviewer.setdefault(review.reviewer_id, []).append(review)

    performance = []
    for reviewer in reviewers:
        reviews = by_reviewer.get(reviewer.id, [])
        completed = [r for r in reviews if r.status == ReviewStatus.COMPLETED]

        scores = [r.score for r in completed if r.score is not None]
        turnarounds = []
        on_time = 0
        for review in completed:
            if review.review_date is None:
                continue
            proposal = review.proposal
            started = proposal.date_submitted or proposal.created_at
            elapsed_ms = (review.review_date - started).total_seconds() * 1000
            if elapsed_ms >= 0:
                turnarounds.append(math.ceil(elapsed_ms / MS_PER_DAY))
            if review.review_date <= proposal.deadline:
                on_time += 1

        performance.append(
            ReviewerPerformance(
                reviewer_id=reviewer.id,
                name=reviewer.full_name,
                email=reviewer.email,
                expertise=reviewer.department,
                reviews_completed=len(completed),
                total_assigned=len(reviews),
                average_score=round(sum(scores) / len(scores), 1) if scores else 0.0,
                average_turnaround_days=round(sum(turnarounds) / len(turnarounds), 1) if turnarounds else 0.0,
                on_time_rate=round(on_time / len(completed) * 100, 1) if completed else 0.0,
            )
        )
    return performance


async def get_user_stats(db: AsyncSession, now: Optional[datetime] = None) -> UserStatsResponse:
    now = now or datetime.now(timezone.utc)
    start, end = month_window(now.year, now.month)

    result = await db.execute(select(User))
    users = list(result.scalars().all())

    by_role = Counter(u.role.value for u in users)
    by_status = Counter(u.status.value for u in users)
    verified = sum(1 for u in users if u.is_email_verified)

    return UserStatsResponse(
        total_users=len(users),
        by_role={role.value: by_role.get(role.value, 0) for role in UserRole},
        by_status={status.value: by_status.get(status.value, 0) for status in UserStatus},
        verified=verified,
        unverified=len(users) - verified,
        new_this_month=sum(1 for u in users if _in_window(u.created_at, start, end)),
    )


async def get_grant_stats(db: AsyncSession, now: Optional[datetime] = None) -> GrantStatsResponse:
    """Grant totals. Past-deadline grants count as closed even before reconciliation runs."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(select(Grant))
    grants = list(result.scalars().all())

    def is_closed(grant: Grant) -> bool:
        return grant.status == GrantStatus.CLOSED or grant.deadline < now

    per_category: dict[str, dict] = {}
    for grant in grants:
        entry = per_category.setdefault(grant.category.value, {"grants": 0, "funding": Decimal("0")})
        entry["grants"] += 1
        entry["funding"] += grant.funding

    closed = sum(1 for g in grants if is_closed(g))
    return GrantStatsResponse(
        total_grants=len(grants),
        active_grants=len(grants) - closed,
        closed_grants=closed,
        total_funding=float(sum((g.funding for g in grants), Decimal("0"))),
        total_applicants=sum(g.applicants for g in grants),
        total_approved=sum(g.approved for g in grants),
        by_category=[
            CategoryStats(category=name, grants=entry["grants"], funding=float(entry["funding"]))
            for name, entry in sorted(per_category.items())
        ],
    )


# =============================================================================
# CSV export
# =============================================================================


async def export_csv(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """
    Three-section CSV: summary statistics, one row per proposal, one row per
    review. Sections are separated by a blank line and start with a title row.
    """
    now = now or datetime.now(timezone.utc)
    proposals = list((await db.execute(select(Proposal).order_by(Proposal.created_at.desc()))).scalars().all())
    reviews = list((await db.execute(select(Review).order_by(Review.created_at.desc()))).scalars().all())

    approved = [p for p in proposals if p.status == ProposalStatus.APPROVED]
    scored = [r.score for r in reviews if r.status == ReviewStatus.COMPLETED and r.score is not None]

    buffer = io.StringIO()
    writer = csv.writer(buffer)

    writer.writerow(["Summary Statistics"])
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Generated", now.strftime("%Y-%m-%d %H:%M UTC")])
    writer.writerow(["Total Proposals", len(proposals)])
    writer.writerow(["Approved", len(approved)])
    writer.writerow(["Rejected", sum(1 for p in proposals if p.status == ProposalStatus.REJECTED)])
    writer.writerow(["Pending", sum(1 for p in proposals if p.status in PENDING_STATUSES)])
    writer.writerow(["Total Funding Approved", format_money(sum((p.funding for p in approved), Decimal("0")))])
    writer.writerow(["Average Review Score", round(sum(scored) / len(scored), 1) if scored else 0])
    writer.writerow([])

    writer.writerow(["Proposals"])
    writer.writerow(["ID", "Title", "Researcher", "Email", "Category", "Status", "Funding", "Date Submitted", "Recommended Score"])
    for p in proposals:
        writer.writerow(
            [
                str(p.id),
                p.title,
                p.researcher.full_name if p.researcher else "",
                p.researcher.email if p.researcher else "",
                p.category.value,
                p.status.value,
                f"{p.funding:.2f}",
                p.date_submitted.strftime("%Y-%m-%d") if p.date_submitted else "",
                p.recommended_score if p.recommended_score is not None else "",
            ]
        )
    writer.writerow([])

    writer.writerow(["Reviews"])
    writer.writerow(["ID", "Proposal", "Reviewer", "Status", "Decision", "Score", "Review Date"])
    for r in reviews:
        writer.writerow(
            [
                str(r.id),
                r.proposal.title if r.proposal else "",
                r.reviewer.full_name if r.reviewer else "",
                r.status.value,
                r.decision.value if r.decision else "",
                r.score if r.score is not None else "",
                r.review_date.strftime("%Y-%m-%d") if r.review_date else "",
            ]
        )

    return buffer.getvalue()
