"""
Grant API Endpoints
List and view funding opportunities; administrators create, edit and remove them.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, status

from backend.api.deps import AdminUser, AsyncSessionDep
from backend.schemas.auth import MessageResponse
from backend.schemas.grants import GrantCreate, GrantResponse, GrantUpdate
from backend.services import grant_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/grants", tags=["Grants"])


@router.get(
    "",
    response_model=list[GrantResponse],
    summary="List grants",
    description="All grants, newest first. Grants past their deadline are reported as Closed.",
)
async def list_grants(db: AsyncSessionDep) -> list[GrantResponse]:
    grants = await grant_service.list_grants(db)
    return [GrantResponse.model_validate(g) for g in grants]


@router.get(
    "/{grant_id}",
    response_model=GrantResponse,
    summary="Get grant details",
)
async def get_grant(grant_id: UUID, db: AsyncSessionDep) -> GrantResponse:
    grant = await grant_service.get_grant(db, grant_id)
    return GrantResponse.model_validate(grant)


@router.post(
    "",
    response_model=GrantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create grant",
)
async def create_grant(data: GrantCreate, db: AsyncSessionDep, admin: AdminUser) -> GrantResponse:
    """
    Publish a new grant.

    All researchers are notified in the background.
    """
    grant = await grant_service.create_grant(db, data, admin)
    logger.info(f"Grant {grant.id} created by {admin.id}")
    return GrantResponse.model_validate(grant)


@router.put(
    "/{grant_id}",
    response_model=GrantResponse,
    summary="Update grant",
)
async def update_grant(
    grant_id: UUID,
    data: GrantUpdate,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> GrantResponse:
    grant = await grant_service.update_grant(db, grant_id, data)
    return GrantResponse.model_validate(grant)


@router.delete(
    "/{grant_id}",
    response_model=MessageResponse,
    summary="Delete grant",
)
async def delete_grant(grant_id: UUID, db: AsyncSessionDep, admin: AdminUser) -> MessageResponse:
    await grant_service.delete_grant(db, grant_id)
    logger.info(f"Grant {grant_id} deleted by {admin.id}")
    return MessageResponse(message="Grant deleted successfully.")
