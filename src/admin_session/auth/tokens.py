"""Signed, time-bound access tokens."""

import logging
import math
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Union

from jose import JWTError, jwt

from admin_session.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Token:
    """An issued access token and the fields it carries."""

    value: str
    subject: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Valid:
    subject: str
    token_id: str


@dataclass(frozen=True)
class Expired:
    """Signature checked out but the token is past its expiry."""

    subject: str
    token_id: str


@dataclass(frozen=True)
class Invalid:
    reason: str


TokenVerification = Union[Valid, Expired, Invalid]


class TokenCodec:
    """Issues and verifies HS256 JWTs signed with the configured secret.

    Expiry is checked here rather than by the JWT library so that an expired
    token still yields its subject and ``jti`` for the renewal path.
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self._secret = settings.token_secret_key
        self._algorithm = settings.token_algorithm
        self._issuer = settings.token_issuer
        self._clock = clock

    def _now_millis(self) -> int:
        return round(self._clock() * 1000)

    def issue(self, subject: str, lifetime_millis: int) -> Token:
        """Issue a token for ``subject``; a non-positive lifetime is already expired."""
        now_millis = self._now_millis()
        expires_millis = now_millis + lifetime_millis
        token_id = str(uuid.uuid4())

        claims = {
            "sub": subject,
            "jti": token_id,
            "iss": self._issuer,
            "iat": now_millis // 1000,
            "exp": math.ceil(expires_millis / 1000),
            # NumericDate is whole seconds; expiry is decided on this one
            "exp_ms": expires_millis,
        }
        value = jwt.encode(
            claims,
            self._secret,
            algorithm=self._algorithm,
            headers={"typ": "JWT"},
        )
        return Token(
            value=value,
            subject=subject,
            token_id=token_id,
            issued_at=datetime.fromtimestamp(now_millis / 1000, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_millis / 1000, tz=timezone.utc),
        )

    def verify(self, token: str) -> TokenVerification:
        """Check signature and expiry, returning Valid, Expired or Invalid."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={
                    # require_exp would switch verify_exp back on
                    "verify_exp": False,
                    "verify_aud": False,
                    "require_sub": True,
                    "require_jti": True,
                },
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return Invalid(reason=str(e))

        subject = claims.get("sub")
        token_id = claims.get("jti")
        exp_millis = claims.get("exp_ms")
        if not isinstance(subject, str) or not subject:
            return Invalid(reason="Missing subject")
        if not isinstance(token_id, str) or not token_id:
            return Invalid(reason="Missing token id")
        if not isinstance(exp_millis, int) or isinstance(exp_millis, bool):
            return Invalid(reason="Expiration must be an integer")

        if exp_millis <= self._now_millis():
            return Expired(subject=subject, token_id=token_id)
        return Valid(subject=subject, token_id=token_id)
