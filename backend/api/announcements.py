"""
Announcement API Endpoints
Public announcement feed; administrators publish and remove entries.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy import select

from backend.api.deps import AdminUser, AsyncSessionDep
from backend.core.exceptions import NotFoundError
from backend.models import Announcement
from backend.schemas.auth import MessageResponse
from backend.schemas.content import AnnouncementCreate, AnnouncementResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/announcements", tags=["Announcements"])


@router.get("", response_model=list[AnnouncementResponse], summary="List announcements")
async def list_announcements(db: AsyncSessionDep) -> list[AnnouncementResponse]:
    """Pinned announcements first, then newest first."""
    result = await db.execute(
        select(Announcement).order_by(Announcement.pinned.desc(), Announcement.date.desc())
    )
    return [AnnouncementResponse.model_validate(a) for a in result.scalars().all()]


@router.post(
    "",
    response_model=AnnouncementResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create announcement",
)
async def create_announcement(
    data: AnnouncementCreate,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> AnnouncementResponse:
    values = data.model_dump()
    if values["date"] is None:
        del values["date"]
    if not values.get("author"):
        values["author"] = admin.full_name

    announcement = Announcement(**values)
    db.add(announcement)
    await db.flush()
    await db.refresh(announcement)

    logger.info(f"Announcement {announcement.id} published by {admin.id}")
    return AnnouncementResponse.model_validate(announcement)


@router.delete("/{announcement_id}", response_model=MessageResponse, summary="Delete announcement")
async def delete_announcement(
    announcement_id: UUID,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> MessageResponse:
    announcement = await db.get(Announcement, announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement", str(announcement_id))

    await db.delete(announcement)
    await db.flush()
    return MessageResponse(message="Announcement deleted.")
