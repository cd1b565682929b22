"""
Authentication schemas for registration, login, tokens and email verification.
"""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.models import UserRole, UserStatus


def validate_password_strength(password: str) -> str:
    """
    Validate password meets security requirements.

    Requirements:
    - Minimum 8 characters
    - At least 1 uppercase letter
    - At least 1 lowercase letter
    - At least 1 number
    - At least 1 special character
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")

    if not re.search(r"[^A-Za-z0-9\s]", password):
        raise ValueError("Password must contain at least one special character")

    return password


def validate_person_name(value: str) -> str:
    """First/last names: 2-50 characters, letters and spaces only."""
    value = value.strip()
    if not 2 <= len(value) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not all(ch.isalpha() or ch == " " for ch in value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def validate_org_name(value: Optional[str]) -> Optional[str]:
    """Institution/department: 2-100 characters after trimming."""
    if value is None:
        return None
    value = value.strip()
    if not 2 <= len(value) <= 100:
        raise ValueError("Must be between 2 and 100 characters")
    return value


class RegisterRequest(BaseModel):
    """Self-registration. The created account is always a researcher."""

    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="Password (min 8 characters, mixed case, number and symbol)")
    institution: str = Field(..., description="Research institution")
    department: Optional[str] = Field(None, description="Department")

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


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenData(BaseModel):
    """Decoded access token payload."""

    user_id: UUID
    role: Optional[UserRole] = None
    exp: Optional[datetime] = None


class UserResponse(BaseModel):
    """Public view of a user record."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: UserRole
    institution: str
    department: Optional[str] = None
    profile_image: Optional[str] = None
    status: UserStatus
    is_email_verified: bool
    created_at: datetime
    last_modified_by_name: Optional[str] = None
    last_modified_by_email: Optional[str] = None
    last_modified_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Returned by register and login."""

    user: UserResponse
    token: str
    token_type: str = "bearer"


class ResendVerificationRequest(BaseModel):
    email: EmailStr = Field(..., description="Address the account was registered with")


class MessageResponse(BaseModel):
    message: str
    success: bool = True
