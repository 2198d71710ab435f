"""Authentication routes: login, logout, session inspection and revocation."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from admin_session.config import Settings
from admin_session.errors import AuthenticationError, AuthorizationError, DataNotFoundError
from admin_session.schemas import Result
from admin_session.auth.middleware import (
    AdminUser,
    AuthenticatedUser,
    get_app_settings,
    get_auth_service,
)
from admin_session.auth.models import CurrentUser, LoginRequest
from admin_session.auth.permissions import can_access
from admin_session.auth.service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


@router.post("/login")
async def login(
    credentials: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Result:
    """
    Verify username and password and open a session.
    The token in ``data`` goes into the ``access_token`` header of later calls.
    """
    token = await auth_service.login(credentials.username, credentials.password)
    if token is None:
        raise AuthenticationError()
    return Result.success(token.value, "Login successful")


@router.post("/logout")
async def logout(
    user: AuthenticatedUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Result:
    """Log out the current user by deleting their session."""
    await auth_service.revoke(user.user_id)
    return Result.success(None, "Logout successful")


@router.get("/me")
async def get_current_user(user: AuthenticatedUser) -> Result:
    """Get information about the currently authenticated user."""
    principal = user.principal
    return Result.success(
        CurrentUser(
            user_id=principal.user_id,
            username=principal.username,
            display_name=principal.name,
            email=principal.email,
            authorities=user.authorities,
        ).model_dump()
    )


@router.get("/sessions/{user_id}")
async def get_session(
    user_id: str,
    user: AuthenticatedUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Result:
    """Show a user's session. Administrators may view any session, others only their own."""
    if not can_access(user, user_id, settings.admin_authority):
        raise AuthorizationError()

    session = await auth_service.session_manager.get_session(user_id)
    if session is None:
        raise DataNotFoundError(f"No active session for user {user_id}")

    return Result.success(
        {
            "user_id": session.user_id,
            "username": session.principal.username,
            "authorities": session.authorities,
            "session_created_at": session.session_created_at.isoformat(),
            "session_refreshed_at": session.session_refreshed_at.isoformat(),
        }
    )


@router.delete("/sessions/{user_id}")
async def revoke_session(
    user_id: str,
    admin: AdminUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Result:
    """Force-logout any user. Revoking a user without a session still succeeds."""
    await auth_service.revoke(user_id)
    logger.info(f"Administrator {admin.user_id} revoked session of user {user_id}")
    return Result.success(None, "Session revoked")
