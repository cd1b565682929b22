"""
Schemas for portal content: announcements, community threads, resources and
contact messages.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.models import AnnouncementPriority


def _required_text(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("must not be blank")
    return v.strip()


# =============================================================================
# Announcements
# =============================================================================


class AnnouncementCreate(BaseModel):
    title: str = Field(..., max_length=255)
    excerpt: Optional[str] = None
    content: str
    category: str = Field(..., max_length=100)
    priority: AnnouncementPriority = AnnouncementPriority.LOW
    date: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    author: Optional[str] = None
    read_time: Optional[str] = None
    pinned: bool = False

    @field_validator("title", "content", "category")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _required_text(v)


class AnnouncementResponse(BaseModel):
    id: UUID
    title: str
    excerpt: Optional[str] = None
    content: str
    category: str
    priority: AnnouncementPriority
    date: datetime
    tags: list[str]
    author: Optional[str] = None
    read_time: Optional[str] = None
    views: int
    pinned: bool
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Community
# =============================================================================


class ThreadCreate(BaseModel):
    title: str = Field(..., max_length=255)
    domain: str = Field(..., max_length=100)
    content: str
    author: Optional[str] = Field(None, description="Defaults to the caller's name")

    @field_validator("title", "domain", "content")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _required_text(v)


class ReplyCreate(BaseModel):
    content: str
    author: Optional[str] = None

    @field_validator("content")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _required_text(v)


class ReplyResponse(BaseModel):
    id: UUID
    author: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class ThreadResponse(BaseModel):
    id: UUID
    title: str
    domain: str
    author: str
    content: str
    replies: list[ReplyResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Resources
# =============================================================================


class ResourceCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50)
    link: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _required_text(v)


class ResourceResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    type: Optional[str] = None
    link: Optional[str] = None
    category: Optional[str] = None
    tags: list[str]
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Contact
# =============================================================================


class ContactCreate(BaseModel):
    name: str = Field(..., max_length=255)
    email: EmailStr
    subject: str = Field(..., max_length=255)
    category: str = Field(..., max_length=100)
    message: str

    @field_validator("name", "subject", "category", "message")
    @classmethod
    def require_text(cls, v: str) -> str:
        return _required_text(v)


class ContactResponse(BaseModel):
    id: UUID
    name: str
    email: str
    subject: str
    category: str
    message: str
    created_at: datetime

    class Config:
        from_attributes = True
