"""Authentication middleware and dependencies for FastAPI."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from admin_session.config import Settings
from admin_session.errors import AppError, AuthorizationError, TokenMissingError, error_response
from admin_session.auth.authenticator import (
    ACCESS_TOKEN_HEADER,
    NEW_ACCESS_TOKEN_HEADER,
    RequestAuthenticator,
)
from admin_session.auth.models import UserSession
from admin_session.auth.permissions import has_authority
from admin_session.auth.service import AuthService

logger = logging.getLogger(__name__)


class AccessTokenMiddleware(BaseHTTPMiddleware):
    """Runs the request authenticator before any route handler.

    Rejected requests never reach the handler. When the presented token was
    renewed, the replacement is returned in the ``new_access_token`` header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        authenticator: RequestAuthenticator = request.app.state.authenticator
        try:
            outcome = await authenticator.authenticate(
                request.url.path,
                request.headers.get(ACCESS_TOKEN_HEADER),
            )
        except AppError as exc:
            logger.warning(
                f"Authentication failed - URI: {request.url.path}, Method: {request.method}, "
                f"Code: {exc.error_code.code}"
            )
            return error_response(exc.error_code, exc.message)

        request.state.session = outcome.session
        response = await call_next(request)
        if outcome.renewed_token is not None:
            response.headers[NEW_ACCESS_TOKEN_HEADER] = outcome.renewed_token.value
        return response


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_session(request: Request) -> UserSession | None:
    """Session attached by AccessTokenMiddleware, or None on allow-listed paths."""
    return getattr(request.state, "session", None)


async def require_authenticated(
    session: Annotated[UserSession | None, Depends(get_current_session)]
) -> UserSession:
    """Require a valid authenticated session."""
    if session is None:
        raise TokenMissingError()
    return session


async def require_admin(
    session: Annotated[UserSession, Depends(require_authenticated)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> UserSession:
    """Require the configured admin authority."""
    if not has_authority(session, settings.admin_authority):
        logger.warning(f"User {session.user_id} is not an administrator")
        raise AuthorizationError()
    return session


# Type aliases for dependency injection
AuthenticatedUser = Annotated[UserSession, Depends(require_authenticated)]
AdminUser = Annotated[UserSession, Depends(require_admin)]
