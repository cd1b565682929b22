"""
User accounts: creation, admin edits with an audit trail, self-service
profile updates and guarded deletion.
"""
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from backend.core.security import get_password_hash
from backend.models import Proposal, Review, User, UserChange, UserRole, UserStatus
from backend.schemas.users import AdminUserUpdate, ProfileUpdate

logger = structlog.get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", str(user_id))
    return user


async def create_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    institution: str,
    department: Optional[str] = None,
    role: UserRole = UserRole.RESEARCHER,
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    """Create an account. Raises ConflictError when the email is taken."""
    email = normalize_email(email)
    if await get_user_by_email(db, email):
        raise ConflictError("Email already registered.")

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=get_password_hash(password),
        institution=institution,
        department=department,
        role=role,
        status=status,
        is_email_verified=False,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_created", user_id=str(user.id), role=role.value)
    return user


def _audit_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


async def update_user_as_admin(
    db: AsyncSession,
    user_id: UUID,
    data: AdminUserUpdate,
    admin: User,
    now: Optional[datetime] = None,
) -> User:
    """
    Apply an admin edit and record one UserChange per field that actually
    changed. The user's "last modified by" summary points at ``admin``.
    """
    user = await get_user(db, user_id)
    now = now or datetime.now(timezone.utc)
    updates = data.model_dump(exclude_unset=True)

    if updates.get("email"):
        updates["email"] = normalize_email(updates["email"])
        if updates["email"] != user.email:
            existing = await get_user_by_email(db, updates["email"])
            if existing is not None and existing.id != user.id:
                raise ConflictError("Email already registered.")

    changes = []
    for field, new_value in updates.items():
        if new_value is None and field != "department":
            continue
        old_value = getattr(user, field)
        if old_value == new_value:
            continue
        changes.append(
            UserChange(
                user_id=user.id,
                admin_id=admin.id,
                admin_name=admin.full_name,
                admin_email=admin.email,
                field=field,
                old_value=_audit_value(old_value),
                new_value=_audit_value(new_value),
                changed_at=now,
            )
        )
        setattr(user, field, new_value)

    if changes:
        db.add_all(changes)
        user.last_modified_by_id = admin.id
        user.last_modified_by_name = admin.full_name
        user.last_modified_by_email = admin.email
        user.last_modified_at = now

    await db.flush()
    await db.refresh(user)

    logger.info(
        "user_updated_by_admin",
        user_id=str(user.id),
        admin_id=str(admin.id),
        fields=[c.field for c in changes],
    )
    return user


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field != "department":
            continue
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: UUID, admin: User) -> None:
    """
    Delete a user that owns no proposals or reviews.

    Raises:
        ValidationError: admin tried to delete their own account.
        ConflictError: the user still owns proposals or reviews.
    """
    if user_id == admin.id:
        raise ValidationError("You cannot delete your own account.")

    user = await get_user(db, user_id)

    proposals = (
        await db.execute(select(func.count(Proposal.id)).where(Proposal.researcher_id == user_id))
    ).scalar_one()
    reviews = (await db.execute(select(func.count(Review.id)).where(Review.reviewer_id == user_id))).scalar_one()
    if proposals or reviews:
        raise ConflictError(
            f"User cannot be deleted: they own {proposals} proposal(s) and {reviews} review(s)."
        )

    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", user_id=str(user_id), admin_id=str(admin.id))


async def list_users(db: AsyncSession, role: Optional[UserRole] = None) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if role is not None:
        query = query.where(User.role == role)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_user_history(db: AsyncSession, user_id: UUID) -> list[UserChange]:
    await get_user(db, user_id)
    result = await db.execute(
        select(UserChange).where(UserChange.user_id == user_id).order_by(UserChange.changed_at.desc())
    )
    return list(result.scalars().all())
