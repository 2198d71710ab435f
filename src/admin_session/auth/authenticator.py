"""Per-request access token check with transparent renewal."""

import logging
from dataclasses import dataclass
from enum import Enum

from admin_session.config import Settings
from admin_session.errors import (
    SessionExpiredError,
    TokenFingerprintMismatchError,
    TokenInvalidError,
    TokenMissingError,
)
from admin_session.auth.models import UserSession
from admin_session.auth.session import SessionManager
from admin_session.auth.tokens import Expired, Invalid, Token, TokenCodec, Valid

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "access_token"
NEW_ACCESS_TOKEN_HEADER = "new_access_token"


class AuthState(Enum):
    SKIPPED = "skipped"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthOutcome:
    """Result of a request that was not rejected."""

    state: AuthState
    session: UserSession | None = None
    renewed_token: Token | None = None


class RequestAuthenticator:
    """Decides skip / reject / authenticate / renew for a single request.

    Holds no per-request state; the session store is the only arbiter of which
    token is current for a user. Rejections are raised as AppError subclasses.
    """

    def __init__(self, settings: Settings, codec: TokenCodec, session_manager: SessionManager):
        self.settings = settings
        self.codec = codec
        self.session_manager = session_manager
        self._skip_paths = frozenset(settings.skip_paths)

    def is_skipped(self, path: str) -> bool:
        return path in self._skip_paths

    async def authenticate(self, path: str, access_token: str | None) -> AuthOutcome:
        if self.is_skipped(path):
            return AuthOutcome(state=AuthState.SKIPPED)

        if not access_token:
            raise TokenMissingError()

        result = self.codec.verify(access_token)

        if isinstance(result, Invalid):
            logger.warning(f"Invalid token - URI: {path}, Reason: {result.reason}")
            raise TokenInvalidError()

        session = await self.session_manager.get_session(result.subject)
        if session is None:
            logger.warning(f"No session for token subject - UserId: {result.subject}, URI: {path}")
            raise SessionExpiredError()

        if isinstance(result, Valid):
            return AuthOutcome(state=AuthState.AUTHENTICATED, session=session)

        return await self._renew(path, session, result)

    async def _renew(self, path: str, session: UserSession, expired: Expired) -> AuthOutcome:
        if expired.token_id != session.current_token_fingerprint:
            # Superseded by an earlier renewal: replay or a lost race
            logger.warning(
                f"Token fingerprint mismatch - UserId: {expired.subject}, "
                f"Presented: {expired.token_id}, Current: {session.current_token_fingerprint}, "
                f"URI: {path}"
            )
            raise TokenFingerprintMismatchError()

        token = self.codec.issue(expired.subject, self.settings.access_expire_millis)
        session = await self.session_manager.refresh_session(session, token.token_id)
        logger.info(
            f"Token renewed - UserId: {expired.subject}, "
            f"OldFingerprint: {expired.token_id}, NewFingerprint: {token.token_id}"
        )
        return AuthOutcome(state=AuthState.AUTHENTICATED, session=session, renewed_token=token)
