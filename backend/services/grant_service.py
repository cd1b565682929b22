"""
Grant management and deadline reconciliation.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import ConflictError, NotFoundError
from backend.models import Grant, GrantStatus, Proposal, User
from backend.schemas.grants import GrantCreate, GrantUpdate
from backend.services.notification_service import notify_new_grant

logger = structlog.get_logger(__name__)


async def close_expired_grants(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Close every grant whose deadline has passed.

    A single conditional UPDATE, so concurrent callers converge on the same
    result and repeated calls are no-ops. Runs before each grant listing and
    from the hourly beat job.

    Returns:
        Number of grants closed by this call.
    """
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        update(Grant)
        .where(Grant.status != GrantStatus.CLOSED, Grant.deadline < now)
        .values(status=GrantStatus.CLOSED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    closed = result.rowcount or 0
    if closed:
        logger.info("grants_closed_past_deadline", count=closed)
    return closed


async def list_grants(db: AsyncSession, now: Optional[datetime] = None) -> list[Grant]:
    """All grants, newest first, with past-deadline grants already closed."""
    await close_expired_grants(db, now)
    result = await db.execute(
        select(Grant)
        .order_by(Grant.created_at.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_grant(db: AsyncSession, grant_id: UUID) -> Grant:
    grant = await db.get(Grant, grant_id)
    if grant is None:
        raise NotFoundError("Grant", str(grant_id))
    return grant


async def create_grant(db: AsyncSession, data: GrantCreate, admin: User) -> Grant:
    grant = Grant(**data.model_dump())
    db.add(grant)
    await db.flush()
    await db.refresh(grant)

    logger.info("grant_created", grant_id=str(grant.id), admin_id=str(admin.id))
    await notify_new_grant(db, grant, admin)
    return grant


async def update_grant(db: AsyncSession, grant_id: UUID, data: GrantUpdate) -> Grant:
    """Apply a partial update. Proposals keep the values captured at submission."""
    grant = await get_grant(db, grant_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(grant, field, value)
    await db.flush()
    await db.refresh(grant)
    return grant


async def delete_grant(db: AsyncSession, grant_id: UUID) -> None:
    grant = await get_grant(db, grant_id)
    result = await db.execute(select(func.count(Proposal.id)).where(Proposal.grant_id == grant_id))
    if result.scalar_one():
        raise ConflictError("Cannot delete a grant that has proposals submitted against it.")
    await db.delete(grant)
    await db.flush()
    logger.info("grant_deleted", grant_id=str(grant_id))
