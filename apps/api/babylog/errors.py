"""Error taxonomy shared by the boundary, repositories and routes."""
from __future__ import annotations

from typing import Optional


class BabylogError(Exception):
    status_code = 500
    public_detail = "Internal error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.public_detail)
        self.detail = detail or self.public_detail


class Unauthenticated(BabylogError):
    """No session, or a session token that failed verification.

    The detail is fixed so callers cannot tell a missing token from an
    expired or forged one.
    """

    status_code = 401
    public_detail = "Not authenticated"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(None)


class Unauthorized(BabylogError):
    status_code = 403
    public_detail = "Not allowed for this baby"


class NotFound(BabylogError):
    status_code = 404
    public_detail = "Not found"


class ValidationFailure(BabylogError):
    status_code = 422
    public_detail = "Invalid request"


class IntegrityFailure(BabylogError):
    """A write reached the boundary without a resolved identity."""

    status_code = 500
    public_detail = "Internal error"
