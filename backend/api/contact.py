"""Contact form API endpoints."""

import logging

from fastapi import APIRouter, status

from backend.api.deps import AsyncSessionDep
from backend.models import ContactMessage
from backend.schemas.auth import MessageResponse
from backend.schemas.content import ContactCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact_form(data: ContactCreate, db: AsyncSessionDep) -> MessageResponse:
    """
    Submit a contact form.

    Every field is required. The message is stored for follow-up by the
    support team.
    """
    contact = ContactMessage(**data.model_dump())
    db.add(contact)
    await db.flush()

    logger.info(f"Contact form received: subject={data.subject}, category={data.category}, email={data.email}")

    return MessageResponse(message="Thank you for contacting us. We'll get back to you soon.")
