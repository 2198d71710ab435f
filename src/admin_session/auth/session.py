"""Session storage for authenticated users."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from admin_session.config import Settings
from admin_session.auth.models import Principal, UserSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Key-value capability for per-user sessions.

    Each call touches a single key and is expected to be atomic on its own;
    no multi-key transactions are assumed.
    """

    @abstractmethod
    async def save_session(self, user_id: str, session: UserSession, ttl_millis: int) -> None:
        pass

    @abstractmethod
    async def get_session(self, user_id: str) -> UserSession | None:
        pass

    @abstractmethod
    async def delete_session(self, user_id: str) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """In-memory session store for development and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._sessions: dict[str, tuple[str, int]] = {}
        self._clock = clock

    def _now_millis(self) -> int:
        return round(self._clock() * 1000)

    async def save_session(self, user_id: str, session: UserSession, ttl_millis: int) -> None:
        expires_at = self._now_millis() + ttl_millis
        # Stored serialized so readers never share a mutable object
        self._sessions[user_id] = (session.model_dump_json(), expires_at)

    async def get_session(self, user_id: str) -> UserSession | None:
        if user_id not in self._sessions:
            return None

        data, expires_at = self._sessions[user_id]
        if self._now_millis() >= expires_at:
            del self._sessions[user_id]
            return None

        return UserSession.model_validate_json(data)

    async def delete_session(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)


class RedisSessionStore(SessionStore):
    """Redis-backed session store for production."""

    def __init__(self, redis_url: str | None = None, *, prefix: str = "user:", client=None):
        if client is None:
            import redis.asyncio as redis
            client = redis.from_url(redis_url, decode_responses=True)
        self._redis = client
        self._session_prefix = prefix

    def _key(self, user_id: str) -> str:
        return f"{self._session_prefix}{user_id}"

    async def save_session(self, user_id: str, session: UserSession, ttl_millis: int) -> None:
        await self._redis.psetex(self._key(user_id), ttl_millis, session.model_dump_json())

    async def get_session(self, user_id: str) -> UserSession | None:
        data = await self._redis.get(self._key(user_id))
        if not data:
            return None
        return UserSession.model_validate_json(data)

    async def delete_session(self, user_id: str) -> None:
        await self._redis.delete(self._key(user_id))

    async def close(self) -> None:
        await self._redis.aclose()


def build_session_store(settings: Settings) -> SessionStore:
    """Use Redis in production, in-memory for development."""
    if settings.redis_url and settings.is_production:
        return RedisSessionStore(settings.redis_url, prefix=settings.session_key_prefix)
    logger.warning("Using in-memory session store - not suitable for production")
    return InMemorySessionStore()


class SessionManager:
    """Applies the configured session TTL on top of a SessionStore."""

    def __init__(self, settings: Settings, store: SessionStore):
        self.settings = settings
        self._store = store

    @property
    def ttl_millis(self) -> int:
        return self.settings.refresh_expire_millis

    async def create_session(
        self,
        principal: Principal,
        authorities: list[str],
        fingerprint: str,
    ) -> UserSession:
        """Store a fresh session for the principal, replacing any existing one."""
        session = UserSession(
            principal=principal,
            authorities=list(authorities),
            current_token_fingerprint=fingerprint,
        )
        await self._store.save_session(principal.user_id, session, self.ttl_millis)
        logger.info(f"Created session for user {principal.user_id}")
        return session

    async def get_session(self, user_id: str) -> UserSession | None:
        """Retrieve a session by user id."""
        return await self._store.get_session(user_id)

    async def refresh_session(self, session: UserSession, fingerprint: str) -> UserSession:
        """Record a new current fingerprint and restart the session TTL."""
        refreshed = session.model_copy(
            update={
                "current_token_fingerprint": fingerprint,
                "session_refreshed_at": utcnow(),
            }
        )
        await self._store.save_session(refreshed.user_id, refreshed, self.ttl_millis)
        return refreshed

    async def delete_session(self, user_id: str) -> None:
        """Delete a session (logout or forced revoke)."""
        await self._store.delete_session(user_id)
        logger.info(f"Deleted session for user {user_id}")
