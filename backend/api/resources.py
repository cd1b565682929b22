"""
Resource API Endpoints
Shared links and documents for applicants; administrators curate the list.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy import select

from backend.api.deps import AdminUser, AsyncSessionDep
from backend.core.exceptions import NotFoundError
from backend.models import Resource
from backend.schemas.auth import MessageResponse
from backend.schemas.content import ResourceCreate, ResourceResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/resources", tags=["Resources"])


@router.get("", response_model=list[ResourceResponse], summary="List resources")
async def list_resources(db: AsyncSessionDep) -> list[ResourceResponse]:
    result = await db.execute(select(Resource).order_by(Resource.created_at.desc()))
    return [ResourceResponse.model_validate(r) for r in result.scalars().all()]


@router.post(
    "",
    response_model=ResourceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create resource",
)
async def create_resource(data: ResourceCreate, db: AsyncSessionDep, admin: AdminUser) -> ResourceResponse:
    resource = Resource(**data.model_dump())
    db.add(resource)
    await db.flush()
    await db.refresh(resource)
    return ResourceResponse.model_validate(resource)


@router.delete("/{resource_id}", response_model=MessageResponse, summary="Delete resource")
async def delete_resource(resource_id: UUID, db: AsyncSessionDep, admin: AdminUser) -> MessageResponse:
    resource = await db.get(Resource, resource_id)
    if resource is None:
        raise NotFoundError("Resource", str(resource_id))

    await db.delete(resource)
    await db.flush()
    logger.info(f"Resource {resource_id} deleted by {admin.id}")
    return MessageResponse(message="Resource deleted.")
