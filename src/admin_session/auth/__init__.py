"""Authentication module for the admin session service."""

from admin_session.auth.models import Principal, UserSession, LoginRequest, CurrentUser
from admin_session.auth.tokens import Token, TokenCodec, Valid, Expired, Invalid
from admin_session.auth.session import (
    SessionStore,
    InMemorySessionStore,
    RedisSessionStore,
    SessionManager,
    build_session_store,
)
from admin_session.auth.credentials import (
    CredentialVerifier,
    InMemoryUserDirectory,
    PasswordEncoder,
    UserDirectory,
)
from admin_session.auth.service import AuthService
from admin_session.auth.authenticator import AuthOutcome, AuthState, RequestAuthenticator
from admin_session.auth.middleware import (
    AccessTokenMiddleware,
    require_authenticated,
    require_admin,
    AuthenticatedUser,
    AdminUser,
)
from admin_session.auth.routes import router as auth_router

__all__ = [
    # Models
    "Principal",
    "UserSession",
    "LoginRequest",
    "CurrentUser",
    # Tokens
    "Token",
    "TokenCodec",
    "Valid",
    "Expired",
    "Invalid",
    # Session
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionManager",
    "build_session_store",
    # Credentials
    "CredentialVerifier",
    "InMemoryUserDirectory",
    "PasswordEncoder",
    "UserDirectory",
    # Flows
    "AuthService",
    "AuthOutcome",
    "AuthState",
    "RequestAuthenticator",
    # Middleware
    "AccessTokenMiddleware",
    "require_authenticated",
    "require_admin",
    "AuthenticatedUser",
    "AdminUser",
    # Routes
    "auth_router",
]
