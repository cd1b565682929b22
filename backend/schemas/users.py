"""
User management schemas (admin CRUD and self profile).
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.models import UserRole, UserStatus
from backend.schemas.auth import validate_org_name, validate_password_strength, validate_person_name


class AdminUserCreate(BaseModel):
    """Admin-created account. Unlike self-registration the role is selectable."""

    first_name: str
    last_name: str
    email: EmailStr
    password: str
    role: UserRole = UserRole.RESEARCHER
    institution: str
    department: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: str) -> str:
        return validate_person_name(v)

    @field_validator("institution", "department")
    @classmethod
    def validate_institution(cls, v: Optional[str]) -> Optional[str]:
        return validate_org_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class AdminUserUpdate(BaseModel):
    """Partial update applied by an admin. Each changed field is audited."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    institution: Optional[str] = None
    department: Optional[str] = None
    status: Optional[UserStatus] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return validate_person_name(v) if v is not None else None

    @field_validator("institution", "department")
    @classmethod
    def validate_institution(cls, v: Optional[str]) -> Optional[str]:
        return validate_org_name(v)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    institution: Optional[str] = None
    department: Optional[str] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return validate_person_name(v) if v is not None else None

    @field_validator("institution", "department")
    @classmethod
    def validate_institution(cls, v: Optional[str]) -> Optional[str]:
        return validate_org_name(v)


class UserChangeResponse(BaseModel):
    id: UUID
    field: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_at: datetime
    admin_id: Optional[UUID] = None
    admin_name: Optional[str] = None
    admin_email: Optional[str] = None

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """Compact user reference embedded in proposal and review payloads."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    institution: str
    department: Optional[str] = None

    class Config:
        from_attributes = True


class UserHistoryResponse(BaseModel):
    user_id: UUID
    changes: list[UserChangeResponse] = Field(default_factory=list)
