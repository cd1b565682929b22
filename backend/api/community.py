"""
Community API Endpoints
Discussion threads and replies.
"""
import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy import select

from backend.api.deps import AsyncSessionDep, CurrentUser
from backend.core.exceptions import NotFoundError
from backend.models import Thread, ThreadReply
from backend.schemas.content import ReplyCreate, ThreadCreate, ThreadResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/community", tags=["Community"])


async def _get_thread(db, thread_id: UUID) -> Thread:
    thread = await db.get(Thread, thread_id)
    if thread is None:
        raise NotFoundError("Thread", str(thread_id))
    return thread


@router.get("", response_model=list[ThreadResponse], summary="List threads")
async def list_threads(db: AsyncSessionDep) -> list[ThreadResponse]:
    """Threads with the most recent activity first."""
    result = await db.execute(select(Thread).order_by(Thread.updated_at.desc()))
    return [ThreadResponse.model_validate(t) for t in result.scalars().all()]


@router.get("/{thread_id}", response_model=ThreadResponse, summary="Get thread")
async def get_thread(thread_id: UUID, db: AsyncSessionDep) -> ThreadResponse:
    return ThreadResponse.model_validate(await _get_thread(db, thread_id))


@router.post(
    "",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a thread",
)
async def create_thread(data: ThreadCreate, db: AsyncSessionDep, current_user: CurrentUser) -> ThreadResponse:
    thread = Thread(
        title=data.title,
        domain=data.domain,
        content=data.content,
        author=data.author or current_user.full_name,
    )
    db.add(thread)
    await db.flush()
    await db.refresh(thread)

    logger.info(f"Thread {thread.id} started by {current_user.id}")
    return ThreadResponse.model_validate(thread)


@router.post(
    "/{thread_id}/reply",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to a thread",
)
async def add_reply(
    thread_id: UUID,
    data: ReplyCreate,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> ThreadResponse:
    """Append a reply and move the thread to the top of the activity order."""
    thread = await _get_thread(db, thread_id)
    now = datetime.now(timezone.utc)

    db.add(
        ThreadReply(
            thread_id=thread.id,
            author=data.author or current_user.full_name,
            content=data.content,
            created_at=now,
        )
    )
    thread.updated_at = now
    await db.flush()
    await db.refresh(thread)

    return ThreadResponse.model_validate(thread)
