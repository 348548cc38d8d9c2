"""Signed, expiring session tokens.

A token is a compact HS256 JWS: the encoded claims ``{sub, iat, exp}`` plus an
HMAC tag over them, joined into one opaque string. Verification recomputes
the tag (PyJWT compares digests in constant time) and checks expiry against
the codec's own clock, so tests can drive time deterministically.

Every failure surfaces as the same :class:`InvalidSession` error. Callers get
no hint whether the tag, the encoding or the expiry was at fault.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import jwt

from .clock import Clock, utc_now

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60


class InvalidSession(Exception):
    def __init__(self) -> None:
        super().__init__("invalid session")


class SessionCodec:
    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ) -> None:
        if not secret:
            raise ValueError("session secret must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("session ttl must be positive")
        self._secret = secret
        self._ttl_seconds = ttl_seconds
        self._clock = clock or utc_now

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, identity: str) -> str:
        if not identity:
            raise ValueError("identity must not be empty")
        issued_at = int(self._clock().timestamp())
        claims = {
            "sub": identity,
            "iat": issued_at,
            "exp": issued_at + self._ttl_seconds,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the identity bound to ``token`` or raise :class:`InvalidSession`."""
        if not token:
            raise InvalidSession()
        try:
            claims: Dict[str, Any] = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "iat", "exp"],
                },
            )
        except jwt.InvalidTokenError:
            raise InvalidSession() from None

        identity = claims.get("sub")
        expires_at = claims.get("exp")
        if not isinstance(identity, str) or not identity:
            raise InvalidSession()
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise InvalidSession()
        if self._clock().timestamp() >= expires_at:
            raise InvalidSession()
        return identity


def issue(identity: str, secret: str, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    return SessionCodec(secret, ttl_seconds=ttl_seconds).issue(identity)


def verify(token: str, secret: str) -> str:
    # ttl only matters when issuing; expiry comes from the token itself.
    return SessionCodec(secret).verify(token)
