"""
Grant Portal Grant Maintenance Tasks
"""
import asyncio
import logging

from backend.celery_app import celery_app
from backend.database import get_async_session
from backend.services import grant_service

logger = logging.getLogger(__name__)


async def _close_expired_grants_async() -> int:
    async with get_async_session() as session:
        return await grant_service.close_expired_grants(session)


@celery_app.task(queue="normal", name="backend.tasks.grants.close_expired_grants")
def close_expired_grants() -> dict:
    """
    Close grants whose deadline has passed.

    Same conditional update the grant listing runs, so status is correct even
    for grants nobody has listed since their deadline.
    """
    closed = asyncio.run(_close_expired_grants_async())
    if closed:
        logger.info(f"Closed {closed} grants past their deadline")
    return {"status": "ok", "closed": closed}
