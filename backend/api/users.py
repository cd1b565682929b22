"""
User API Endpoints
Administrator user management plus the caller's own profile.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from backend.api.deps import AdminUser, AsyncSessionDep, CurrentUser
from backend.models import UserRole
from backend.schemas.auth import MessageResponse, UserResponse
from backend.schemas.users import (
    AdminUserCreate,
    AdminUserUpdate,
    ProfileUpdate,
    UserChangeResponse,
    UserHistoryResponse,
)
from backend.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


# =============================================================================
# Self-service
# =============================================================================


@router.get("/me", response_model=UserResponse, summary="Get my profile")
async def get_my_profile(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.put("/me", response_model=UserResponse, summary="Update my profile")
async def update_my_profile(
    data: ProfileUpdate,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> UserResponse:
    """Update name, institution and department. Role and email are admin-managed."""
    user = await user_service.update_profile(db, current_user, data)
    return UserResponse.model_validate(user)


# =============================================================================
# Administration
# =============================================================================


@router.get("", response_model=list[UserResponse], summary="List users")
async def list_users(
    db: AsyncSessionDep,
    admin: AdminUser,
    role: Optional[UserRole] = Query(default=None, description="Only users with this role"),
) -> list[UserResponse]:
    users = await user_service.list_users(db, role)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
async def create_user(data: AdminUserCreate, db: AsyncSessionDep, admin: AdminUser) -> UserResponse:
    user = await user_service.create_user(
        db,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        password=data.password,
        institution=data.institution,
        department=data.department,
        role=data.role,
        status=data.status,
    )
    logger.info(f"User {user.id} ({user.role.value}) created by {admin.id}")
    return UserResponse.model_validate(user)


@router.get("/reviewers", response_model=list[UserResponse], summary="List reviewers")
async def list_reviewers(db: AsyncSessionDep, admin: AdminUser) -> list[UserResponse]:
    users = await user_service.list_users(db, UserRole.REVIEWER)
    return [UserResponse.model_validate(u) for u in users]


@router.get("/{user_id}", response_model=UserResponse, summary="Get user")
async def get_user(user_id: UUID, db: AsyncSessionDep, admin: AdminUser) -> UserResponse:
    user = await user_service.get_user(db, user_id)
    return UserResponse.model_validate(user)


@router.put("/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: UUID,
    data: AdminUserUpdate,
    db: AsyncSessionDep,
    admin: AdminUser,
) -> UserResponse:
    """
    Update a user's account.

    Every changed field is written to the user's history together with the
    administrator who made the change.
    """
    user = await user_service.update_user_as_admin(db, user_id, data, admin)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse, summary="Delete user")
async def delete_user(user_id: UUID, db: AsyncSessionDep, admin: AdminUser) -> MessageResponse:
    await user_service.delete_user(db, user_id, admin)
    return MessageResponse(message="User deleted successfully.")


@router.get("/{user_id}/history", response_model=UserHistoryResponse, summary="User change history")
async def get_user_history(user_id: UUID, db: AsyncSessionDep, admin: AdminUser) -> UserHistoryResponse:
    changes = await user_service.get_user_history(db, user_id)
    return UserHistoryResponse(
        user_id=user_id,
        changes=[UserChangeResponse.model_validate(c) for c in changes],
    )
