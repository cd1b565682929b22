"""
Grant schemas.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from backend.models import GrantCategory, GrantStatus


class GrantBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: GrantCategory
    funding: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    deadline: datetime
    requirements: str = Field(..., min_length=1)

    @field_validator("title", "description", "requirements")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class GrantCreate(GrantBase):
    status: GrantStatus = GrantStatus.ACTIVE


class GrantUpdate(BaseModel):
    """Partial update. Existing proposal snapshots are never touched."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[GrantCategory] = None
    funding: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    deadline: Optional[datetime] = None
    requirements: Optional[str] = None
    status: Optional[GrantStatus] = None


class GrantResponse(BaseModel):
    id: UUID
    title: str
    description: str
    category: GrantCategory
    funding: float
    deadline: datetime
    requirements: str
    status: GrantStatus
    applicants: int
    approved: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
