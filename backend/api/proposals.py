"""
Proposal API Endpoints
Submission, researcher and admin listings, reviewer assignment and award letters.
"""
import io
import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse

from backend.api.deps import AdminUser, AsyncSessionDep, CurrentUser
from backend.core.rate_limit import RateLimitUpload
from backend.schemas.proposals import (
    AssignReviewerRequest,
    AssignReviewerResponse,
    ProposalResponse,
    ProposalWithResearcher,
)
from backend.services import proposal_service
from backend.services.award_letter import render_award_letter
from backend.services.proposal_service import ProposalSubmission
from backend.services.storage import S3Storage, StorageError, UploadedFile, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proposals", tags=["Proposals"])


async def _read_upload(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Read a multipart file into memory. Empty file inputs count as absent."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    return UploadedFile(filename=upload.filename, content=content, content_type=upload.content_type)


@router.post(
    "",
    response_model=ProposalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a proposal",
    description="Multipart submission against a grant. The budget must add up to the grant's funding.",
)
async def submit_proposal(
    db: AsyncSessionDep,
    current_user: CurrentUser,
    storage: Annotated[S3Storage, Depends(get_storage)],
    title: str = Form(""),
    abstract: str = Form(""),
    objectives: str = Form(""),
    methodology: str = Form(""),
    timeline: str = Form(""),
    grant: str = Form(""),
    expected_outcomes: Optional[str] = Form(None),
    personnel_costs: Optional[str] = Form(None),
    equipment_costs: Optional[str] = Form(None),
    materials_costs: Optional[str] = Form(None),
    travel_costs: Optional[str] = Form(None),
    other_costs: Optional[str] = Form(None),
    proposal_document: Optional[UploadFile] = File(None),
    cv_resume: Optional[UploadFile] = File(None),
    additional_documents: Optional[list[UploadFile]] = File(None),
    _rate_limit: RateLimitUpload = None,
) -> ProposalResponse:
    """
    Submit a proposal.

    - **grant**: id of the grant applied for; deadline, funding and category
      are copied from it
    - **personnel_costs** ... **other_costs**: budget breakdown, blank counts as 0
    - **proposal_document**: required; **cv_resume** and
      **additional_documents** are optional
    """
    additional = []
    for upload in additional_documents or []:
        document = await _read_upload(upload)
        if document is not None:
            additional.append(document)

    submission = ProposalSubmission(
        title=title,
        abstract=abstract,
        objectives=objectives,
        methodology=methodology,
        timeline=timeline,
        grant=grant,
        expected_outcomes=expected_outcomes,
        personnel_costs=personnel_costs,
        equipment_costs=equipment_costs,
        materials_costs=materials_costs,
        travel_costs=travel_costs,
        other_costs=other_costs,
        proposal_document=await _read_upload(proposal_document),
        cv_resume=await _read_upload(cv_resume),
        additional_documents=additional,
    )

    try:
        proposal = await proposal_service.submit_proposal(db, current_user, submission, storage)
    except StorageError as e:
        logger.error(f"Upload failed for proposal by {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="File upload failed. Please try again later.",
        )

    return ProposalResponse.model_validate(proposal)


@router.get(
    "/mine",
    response_model=list[ProposalResponse],
    summary="List my proposals",
)
async def list_my_proposals(db: AsyncSessionDep, current_user: CurrentUser) -> list[ProposalResponse]:
    proposals = await proposal_service.list_researcher_proposals(db, current_user.id)
    return [ProposalResponse.model_validate(p) for p in proposals]


@router.get(
    "/mine/{proposal_id}",
    response_model=ProposalResponse,
    summary="Get one of my proposals",
)
async def get_my_proposal(
    proposal_id: UUID,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> ProposalResponse:
    proposal = await proposal_service.get_researcher_proposal(db, current_user.id, proposal_id)
    return ProposalResponse.model_validate(proposal)


@router.get(
    "/grant/{grant_id}",
    response_model=list[ProposalWithResearcher],
    summary="List proposals for a grant",
)
async def list_grant_proposals(
    grant_id: UUID,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> list[ProposalWithResearcher]:
    proposals = await proposal_service.list_grant_proposals(db, grant_id)
    return [ProposalWithResearcher.model_validate(p) for p in proposals]


@router.put(
    "/{proposal_id}/assign-reviewer",
    response_model=AssignReviewerResponse,
    summary="Assign a reviewer",
)
async def assign_reviewer(
    proposal_id: UUID,
    data: AssignReviewerRequest,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> AssignReviewerResponse:
    """
    Assign a reviewer to a proposal.

    Assigning the same reviewer again returns the existing review unchanged.
    """
    proposal, review, created = await proposal_service.assign_reviewer(db, proposal_id, data.reviewer_id, admin)
    return AssignReviewerResponse(
        message="Reviewer assigned successfully." if created else "Reviewer was already assigned to this proposal.",
        proposal=ProposalResponse.model_validate(proposal),
        review_id=review.id,
        review_status=review.status,
        created=created,
    )


@router.get(
    "/{proposal_id}/award-letter",
    summary="Download award letter",
    description="PDF award letter for an approved proposal. Accepts the token as a query parameter.",
    response_class=StreamingResponse,
)
async def download_award_letter(
    proposal_id: UUID,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> StreamingResponse:
    proposal = await proposal_service.get_award_letter_proposal(db, proposal_id, current_user)
    pdf = render_award_letter(proposal)

    return StreamingResponse(
        io.BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="award-letter-{proposal.id}.pdf"'},
    )
