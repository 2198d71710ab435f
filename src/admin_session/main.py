"""FastAPI application factory for the admin session service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admin_session.config import Settings, get_settings
from admin_session.errors import register_exception_handlers
from admin_session.auth.authenticator import NEW_ACCESS_TOKEN_HEADER, RequestAuthenticator
from admin_session.auth.credentials import (
    CredentialVerifier,
    InMemoryUserDirectory,
    PasswordEncoder,
    UserDirectory,
)
from admin_session.auth.middleware import AccessTokenMiddleware
from admin_session.auth.routes import router as auth_router
from admin_session.auth.service import AuthService
from admin_session.auth.session import (
    RedisSessionStore,
    SessionManager,
    SessionStore,
    build_session_store,
)
from admin_session.auth.tokens import TokenCodec

logger = logging.getLogger(__name__)


def build_user_directory(settings: Settings, encoder: PasswordEncoder) -> UserDirectory:
    """In-memory directory, seeded with the bootstrap admin when configured."""
    directory = InMemoryUserDirectory(encoder)
    if settings.bootstrap_admin_username and settings.bootstrap_admin_password:
        directory.add_user(
            settings.bootstrap_admin_username,
            settings.bootstrap_admin_password,
            [settings.admin_authority],
            display_name="Administrator",
        )
        logger.info(f"Seeded bootstrap admin {settings.bootstrap_admin_username}")
    else:
        logger.warning("No bootstrap admin configured - user directory is empty")
    return directory


def create_app(
    settings: Settings | None = None,
    *,
    directory: UserDirectory | None = None,
    session_store: SessionStore | None = None,
    codec: TokenCodec | None = None,
) -> FastAPI:
    """Wire settings, stores and flows into a FastAPI application."""
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    encoder = PasswordEncoder()
    directory = directory or build_user_directory(settings, encoder)
    store = session_store or build_session_store(settings)
    codec = codec or TokenCodec(settings)
    session_manager = SessionManager(settings, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting admin session service...")
        logger.info(
            f"Access token lifetime: {settings.access_expire_millis} ms, "
            f"session TTL: {settings.refresh_expire_millis} ms, "
            f"skip paths: {settings.skip_paths}"
        )

        yield

        if isinstance(store, RedisSessionStore):
            await store.close()
        logger.info("Shutting down admin session service...")

    app = FastAPI(
        title="Admin Session Service",
        description="Token issuance, silent renewal and session revocation for the admin panel",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.auth_service = AuthService(
        settings,
        CredentialVerifier(directory, encoder),
        codec,
        session_manager,
    )
    app.state.authenticator = RequestAuthenticator(settings, codec, session_manager)

    # Added first so CORS wraps it and answers preflights without a token
    app.add_middleware(AccessTokenMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[NEW_ACCESS_TOKEN_HEADER],
    )

    register_exception_handlers(app)
    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "admin-session"}

    return app


# =============================================================================
# Run with Uvicorn
# =============================================================================

if __name__ == "__main__":
    from admin_session.cli import serve
    serve()
