"""Authentication API endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from safezone.api.dependencies import (
    get_auth_service,
    get_current_user,
    get_request_context,
    get_user_service,
)
from safezone.models.audit import RequestContext
from safezone.models.auth import (
    AuthResponse,
    Availability,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
)
from safezone.models.user import User, UserProfile
from safezone.services.auth_service import AuthService
from safezone.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> AuthResponse:
    """Create an account and return a token pair.

    Raises:
        ConflictError (409): Username or email already registered
    """
    return await auth_service.register(
        username=request.username,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        context=context,
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> AuthResponse:
    """Login with username or email and password.

    Raises:
        InvalidCredentialsError (401): Unknown identifier or wrong password
        AccountLockedError (423): Too many failed attempts
        AccountInactiveError (403): Account deactivated
    """
    return await auth_service.login(request.identifier, request.password, context)


@router.post("/refresh-token")
async def refresh_token(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> AuthResponse:
    """Rotate a refresh token: the presented one is revoked, a new pair issued."""
    return await auth_service.refresh(request.refresh_token, context)


@router.post("/logout")
async def logout(
    request: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> MessageResponse:
    """Revoke the given refresh token. Always succeeds for an authenticated caller."""
    await auth_service.logout(
        current_user.id,
        request.refresh_token if request else None,
        context,
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/profile")
async def profile(current_user: User = Depends(get_current_user)) -> UserProfile:
    return current_user.profile()


@router.get("/validate-token")
async def validate_token(current_user: User = Depends(get_current_user)) -> dict:
    """Confirm the bearer token is valid and return its user."""
    return {"valid": True, "user": current_user.profile().model_dump(mode="json")}


@router.get("/check-availability")
async def check_availability(
    username: Optional[str] = Query(default=None, max_length=30),
    email: Optional[str] = Query(default=None, max_length=255),
    user_service: UserService = Depends(get_user_service),
) -> Availability:
    """Report whether a username and/or email can still be registered."""
    if not username and not email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide a username or email to check",
        )
    return await user_service.check_availability(username=username, email=email)
