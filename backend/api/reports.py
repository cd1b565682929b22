"""
Reporting API Endpoints
Monthly report generation, analytics and exports. Administrators only.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status

from backend.api.deps import AdminUser, AsyncSessionDep
from backend.schemas.reports import (
    AnalyticsResponse,
    GenerateReportRequest,
    GrantStatsResponse,
    ReportResponse,
    ReviewerPerformance,
    UserStatsResponse,
)
from backend.services import report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.post(
    "/generate",
    response_model=ReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate monthly report",
)
async def generate_report(
    data: GenerateReportRequest,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> ReportResponse:
    """
    Compute and store the report for a calendar month.

    Each call stores a new report; earlier reports for the same period are kept.
    """
    report = await report_service.generate_report(db, data.month, data.year)
    logger.info(f"Report {report.period} generated by {admin.id}")
    return ReportResponse.model_validate(report)


@router.get(
    "/evaluation",
    response_model=list[ReportResponse],
    summary="List stored reports",
)
async def list_reports(db: AsyncSessionDep, admin: AdminUser) -> list[ReportResponse]:
    reports = await report_service.list_reports(db)
    return [ReportResponse.model_validate(r) for r in reports]


@router.get(
    "/analytics",
    response_model=AnalyticsResponse,
    summary="Monthly and category analytics",
)
async def get_analytics(db: AsyncSessionDep, admin: AdminUser) -> AnalyticsResponse:
    return await report_service.get_analytics(db)


@router.get(
    "/reviewer-performance",
    response_model=list[ReviewerPerformance],
    summary="Reviewer performance",
)
async def get_reviewer_performance(db: AsyncSessionDep, admin: AdminUser) -> list[ReviewerPerformance]:
    return await report_service.get_reviewer_performance(db)


@router.get(
    "/export",
    summary="Export CSV",
    description="Summary statistics, proposals and reviews as a CSV attachment.",
    response_class=Response,
)
async def export_report(db: AsyncSessionDep, admin: AdminUser) -> Response:
    content = await report_service.export_csv(db)
    filename = f"grant-report-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/user-stats",
    response_model=UserStatsResponse,
    summary="User statistics",
)
async def get_user_stats(db: AsyncSessionDep, admin: AdminUser) -> UserStatsResponse:
    return await report_service.get_user_stats(db)


@router.get(
    "/grant-stats",
    response_model=GrantStatsResponse,
    summary="Grant statistics",
)
async def get_grant_stats(db: AsyncSessionDep, admin: AdminUser) -> GrantStatsResponse:
    return await report_service.get_grant_stats(db)
