"""
Authentication API Endpoints
User registration, login, email verification and current-user info.
"""
import logging

from fastapi import APIRouter, status

from backend.api.deps import AsyncSessionDep, CurrentUser, create_access_token
from backend.core.exceptions import AuthenticationError, AuthorizationError
from backend.core.rate_limit import RateLimitAuth
from backend.core.security import verify_password
from backend.models import UserRole, UserStatus
from backend.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResendVerificationRequest,
    UserResponse,
)
from backend.services import user_service
from backend.services.verification import issue_verification_email, verify_email_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new researcher",
    description="Create a researcher account and send an email verification link.",
)
async def register(
    user_data: RegisterRequest,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> AuthResponse:
    """
    Register a new user account.

    Self-registration always creates a researcher; other roles are assigned
    by an administrator.
    """
    user = await user_service.create_user(
        db,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=user_data.email,
        password=user_data.password,
        institution=user_data.institution,
        department=user_data.department,
        role=UserRole.RESEARCHER,
    )
    await issue_verification_email(db, user)

    logger.info(f"Registered researcher {user.id}")
    return AuthResponse(user=UserResponse.model_validate(user), token=create_access_token(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login user",
    description="Authenticate with email and password and return a JWT.",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> AuthResponse:
    user = await user_service.get_user_by_email(db, credentials.email)
    if user is None:
        raise AuthenticationError("No account found with that email address.", code="INVALID_CREDENTIALS")

    if not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Incorrect password. Please try again.", code="INVALID_CREDENTIALS")

    if user.status == UserStatus.INACTIVE:
        raise AuthorizationError("Your account is inactive. Please contact an administrator.", code="ACCOUNT_INACTIVE")

    return AuthResponse(user=UserResponse.model_validate(user), token=create_access_token(user))


@router.get(
    "/verify-email/{token}",
    response_model=MessageResponse,
    summary="Verify email address",
)
async def verify_email(token: str, db: AsyncSessionDep) -> MessageResponse:
    await verify_email_token(db, token)
    return MessageResponse(message="Email verified successfully. You can now use all features of your account.")


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    summary="Resend verification email",
)
async def resend_verification(
    data: ResendVerificationRequest,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> MessageResponse:
    """
    Issue a fresh verification link.

    The response does not reveal whether the address is registered.
    """
    generic = MessageResponse(
        message="If an account exists for this email, a verification link has been sent."
    )

    user = await user_service.get_user_by_email(db, data.email)
    if user is None:
        return generic

    if user.is_email_verified:
        return MessageResponse(message="This email address is already verified.")

    await issue_verification_email(db, user)
    return generic


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_current_user_info(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)
