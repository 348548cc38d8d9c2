"""Authentication check for protected routes."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from .errors import Unauthenticated
from .session import InvalidSession, SessionCodec

logger = logging.getLogger(__name__)


class AccessGate:
    """Turns the session cookie on a request into a verified identity.

    A missing cookie and a cookie that fails verification are rejected the
    same way; the resolved identity is left on ``request.state.identity``.
    """

    def __init__(self, codec: SessionCodec, *, cookie_name: str) -> None:
        self.codec = codec
        self.cookie_name = cookie_name

    def authenticate(self, token: Optional[str]) -> str:
        if not token:
            raise Unauthenticated()
        try:
            return self.codec.verify(token)
        except InvalidSession:
            raise Unauthenticated() from None

    def __call__(self, request: Request) -> str:
        try:
            identity = self.authenticate(request.cookies.get(self.cookie_name))
        except Unauthenticated:
            logger.info(
                "rejected unauthenticated request",
                extra={"method": request.method, "path": request.url.path},
            )
            raise
        request.state.identity = identity
        return identity


def require_identity(request: Request) -> str:
    """FastAPI dependency: run the app's gate for this request."""
    gate: AccessGate = request.app.state.gate
    return gate(request)
