"""FastAPI dependencies for services, request context and authentication."""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from safezone.errors import InvalidTokenError
from safezone.models.audit import RequestContext
from safezone.models.user import User
from safezone.services.auth_service import AuthService
from safezone.services.container import ServiceContainer
from safezone.services.danger_zone_service import DangerZoneService
from safezone.services.user_service import UserService

# auto_error=False so a missing header goes through the same error handler
# as a bad token instead of FastAPI's own 403.
bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request) -> ServiceContainer:
    """The service container built during application startup."""
    return request.app.state.services


def get_auth_service(services: ServiceContainer = Depends(get_services)) -> AuthService:
    return services.auth


def get_user_service(services: ServiceContainer = Depends(get_services)) -> UserService:
    return services.users


def get_danger_zone_service(
    services: ServiceContainer = Depends(get_services),
) -> DangerZoneService:
    return services.danger_zones


def get_request_context(request: Request) -> RequestContext:
    """Client address and user agent for audit events."""
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Extract and validate the current user from a JWT Bearer token.

    Raises:
        InvalidTokenError: Missing or invalid token, or the user no longer exists
        AccountInactiveError: The user has been deactivated
    """
    if credentials is None or not credentials.credentials:
        raise InvalidTokenError("Access token required")
    return await auth_service.authenticate(credentials.credentials)
