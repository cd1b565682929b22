"""
Custom Exception Classes for the Grant Portal API.

Provides standardized HTTP exceptions with consistent error messages
across all API endpoints. Auth failures also carry a short machine-readable
code that the global handler copies into the response body.
"""
from typing import Optional

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource: str, id: str = None):
        detail = f"{resource} not found" + (f": {id}" if id else "")
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(HTTPException):
    """Exception raised when a request carries no valid credentials."""

    def __init__(self, message: str, code: str = "AUTHENTICATION_REQUIRED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.code = code


class AuthorizationError(HTTPException):
    """Exception raised when a user is not authorized to access a resource."""

    def __init__(
        self,
        message: str = "Not authorized to access this resource",
        code: Optional[str] = None,
    ):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)
        self.code = code


class ValidationError(HTTPException):
    """Exception raised when request validation fails."""

    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class ConflictError(HTTPException):
    """Exception raised when a resource conflict occurs (e.g., duplicate)."""

    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)


class RateLimitError(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=message)
