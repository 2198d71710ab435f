"""Login and revocation flows."""

import logging

from admin_session.config import Settings
from admin_session.auth.credentials import CredentialVerifier
from admin_session.auth.session import SessionManager
from admin_session.auth.tokens import Token, TokenCodec

logger = logging.getLogger(__name__)


class AuthService:
    """Turns credentials into a token plus stored session, and revokes sessions."""

    def __init__(
        self,
        settings: Settings,
        verifier: CredentialVerifier,
        codec: TokenCodec,
        session_manager: SessionManager,
    ):
        self.settings = settings
        self.verifier = verifier
        self.codec = codec
        self.session_manager = session_manager

    async def login(self, username: str, password: str) -> Token | None:
        """Authenticate and open a session; returns None on bad credentials.

        A successful login overwrites any session the user already had, so
        only the most recent login's token can be renewed.
        """
        logger.info(f"Login attempt - Username: {username}")
        verified = await self.verifier.verify(username, password)
        if verified is None:
            return None
        principal, authorities = verified

        token = self.codec.issue(principal.user_id, self.settings.access_expire_millis)
        await self.session_manager.create_session(principal, authorities, token.token_id)

        logger.info(
            f"Login successful - UserId: {principal.user_id}, Username: {principal.username}, "
            f"TokenFingerprint: {token.token_id}"
        )
        return token

    async def revoke(self, user_id: str) -> None:
        """Delete the user's session. Revoking a missing session is a no-op."""
        await self.session_manager.delete_session(user_id)
        logger.info(f"Session revoked - UserId: {user_id}")
