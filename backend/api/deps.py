"""
FastAPI Dependencies
Shared dependencies for authentication, role checks and database access.
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated, Callable, Optional
from uuid import UUID

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import AuthenticationError, AuthorizationError
from backend.core.sentry import set_user_context
from backend.database import get_db
from backend.models import User, UserRole
from backend.schemas.auth import TokenData

# =============================================================================
# JWT Token Management
# =============================================================================

security = HTTPBearer(auto_error=False)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Issue a signed access token for ``user``.

    Payload is ``{sub, role, exp}``. There is no refresh flow; expiry is the
    only way a token stops working.
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=settings.access_token_expire_days))
    to_encode = {"sub": str(user.id), "role": user.role.value, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData:
    """Decode and validate a JWT token. Raises JWTError on any problem."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token missing subject")

    try:
        return TokenData(
            user_id=UUID(user_id),
            role=payload.get("role"),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc) if "exp" in payload else None,
        )
    except ValueError as e:
        raise JWTError(f"Malformed token payload: {e}") from e


# =============================================================================
# Database Dependency
# =============================================================================

AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: AsyncSessionDep,
    token: Annotated[Optional[str], Query(include_in_schema=False)] = None,
) -> User:
    """
    Resolve the authenticated user.

    The token is read from the ``Authorization: Bearer`` header, or from the
    ``token`` query parameter so download links (award letters) can be opened
    directly in a browser.
    """
    raw_token = credentials.credentials if credentials else token
    if not raw_token:
        raise AuthenticationError("No token provided.", code="AUTHENTICATION_REQUIRED")

    try:
        token_data = decode_token(raw_token)
    except JWTError:
        raise AuthenticationError("Invalid or expired token.", code="INVALID_TOKEN")

    user = await db.get(User, token_data.user_id)
    if user is None:
        raise AuthenticationError("Invalid or expired token.", code="INVALID_TOKEN")

    request.state.user_id = str(user.id)
    set_user_context(str(user.id), user.role.value)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole) -> Callable:
    """
    Build a dependency that only lets users with one of ``roles`` through.

    Usage:
        @router.post("/{proposal_id}")
        async def submit(user: Annotated[User, Depends(require_roles(UserRole.REVIEWER))]):
            ...
    """
    allowed = {UserRole(r) for r in roles}

    async def role_checker(user: CurrentUser) -> User:
        if user.role not in allowed:
            required = ", ".join(sorted(r.value for r in allowed))
            raise AuthorizationError(
                f"Access denied. Your role '{user.role.value}' is not authorized for this resource. "
                f"Required roles: {required}",
                code="INSUFFICIENT_PRIVILEGES",
            )
        return user

    return role_checker


require_admin = require_roles(UserRole.ADMIN)

AdminUser = Annotated[User, Depends(require_admin)]
ReviewerUser = Annotated[User, Depends(require_roles(UserRole.REVIEWER))]
