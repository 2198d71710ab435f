"""Credential verification against the user directory."""

import logging
import uuid
from abc import ABC, abstractmethod

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from admin_session.auth.models import Principal

logger = logging.getLogger(__name__)


class PasswordEncoder:
    """One-way password hashing (argon2id)."""

    def __init__(self):
        self._hasher = PasswordHasher(type=Type.ID)

    def hash(self, plaintext: str) -> str:
        return self._hasher.hash(plaintext)

    def matches(self, plaintext: str, password_hash: str) -> bool:
        try:
            return self._hasher.verify(password_hash, plaintext)
        except (VerificationError, InvalidHashError):
            return False


class UserDirectory(ABC):
    """Lookup side of the user store, owned outside this package."""

    @abstractmethod
    async def find_principal_by_username(self, username: str) -> Principal | None:
        pass

    @abstractmethod
    async def load_authorities(self, user_id: str) -> list[str]:
        pass


class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory for development and tests."""

    def __init__(self, encoder: PasswordEncoder | None = None):
        self._encoder = encoder or PasswordEncoder()
        self._by_username: dict[str, Principal] = {}
        self._authorities: dict[str, list[str]] = {}

    def add_user(
        self,
        username: str,
        password: str,
        authorities: list[str] | None = None,
        *,
        user_id: str | None = None,
        display_name: str | None = None,
        email: str | None = None,
    ) -> Principal:
        principal = Principal(
            user_id=user_id or str(uuid.uuid4()),
            username=username,
            display_name=display_name,
            email=email,
            password_hash=self._encoder.hash(password),
        )
        self._by_username[username] = principal
        self._authorities[principal.user_id] = list(authorities or [])
        return principal

    async def find_principal_by_username(self, username: str) -> Principal | None:
        return self._by_username.get(username)

    async def load_authorities(self, user_id: str) -> list[str]:
        return list(self._authorities.get(user_id, []))


class CredentialVerifier:
    """Checks a username/password pair; never says which of the two was wrong."""

    def __init__(self, directory: UserDirectory, encoder: PasswordEncoder):
        self.directory = directory
        self.encoder = encoder

    async def verify(self, username: str, password: str) -> tuple[Principal, list[str]] | None:
        if not username or not username.strip() or not password:
            logger.warning("Login rejected - empty username or password")
            return None

        principal = await self.directory.find_principal_by_username(username)
        if principal is None:
            logger.warning(f"User not found - Username: {username}")
            return None

        if not principal.password_hash or not self.encoder.matches(password, principal.password_hash):
            logger.warning(f"Password mismatch - Username: {username}")
            return None

        authorities = await self.directory.load_authorities(principal.user_id)
        logger.debug(f"User details loaded - Username: {username}, Authorities: {len(authorities)}")
        return principal, authorities
