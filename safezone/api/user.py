"""Account self-service API endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from safezone.api.dependencies import (
    get_auth_service,
    get_current_user,
    get_request_context,
    get_user_service,
)
from safezone.models.audit import RequestContext
from safezone.models.auth import (
    AuthLogPage,
    ChangePasswordRequest,
    DeleteAccountRequest,
    MessageResponse,
    RevokeSessionsRequest,
    SessionListResponse,
    UpdateProfileRequest,
)
from safezone.models.user import User, UserProfile
from safezone.services.auth_service import AuthService
from safezone.services.user_service import UserService

router = APIRouter(prefix="/api/user", tags=["User"])


@router.get("/profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    return await user_service.get_profile(current_user.id)


@router.put("/profile")
async def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> UserProfile:
    """Update name and phone. Omitted fields are left unchanged."""
    return await user_service.update_profile(
        current_user.id,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )


@router.put("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> MessageResponse:
    """Change the password. Every session is signed out afterwards.

    Raises:
        IncorrectPasswordError (400): Current password is wrong
    """
    await auth_service.change_password(
        current_user.id, request.current_password, request.new_password, context
    )
    return MessageResponse(message="Password changed successfully. Please sign in again.")


@router.delete("/account")
async def delete_account(
    request: DeleteAccountRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    context: RequestContext = Depends(get_request_context),
) -> MessageResponse:
    """Permanently delete the account after confirming the password."""
    await auth_service.delete_account(current_user.id, request.password, context)
    return MessageResponse(message="Account deleted successfully")


@router.get("/sessions")
async def list_sessions(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> SessionListResponse:
    return SessionListResponse(sessions=await user_service.list_sessions(current_user.id))


@router.delete("/sessions/{session_id}")
async def revoke_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    await user_service.revoke_session(current_user.id, session_id)
    return MessageResponse(message="Session revoked successfully")


@router.delete("/sessions")
async def revoke_all_sessions(
    request: Optional[RevokeSessionsRequest] = None,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> dict:
    """Revoke every session, keeping ``current_token_id`` if given."""
    count = await user_service.revoke_all_sessions(
        current_user.id,
        except_token_id=request.current_token_id if request else None,
    )
    return {"message": "Sessions revoked successfully", "revoked": count}


@router.get("/auth-logs")
async def auth_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> AuthLogPage:
    return await user_service.list_auth_events(current_user.id, page=page, limit=limit)
