"""Clock and identifier helpers."""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def new_id() -> str:
    """Return a random, URL-safe identifier for events and event types."""
    return secrets.token_urlsafe(12)


def to_iso(value: datetime) -> str:
    # Fixed width so stored strings sort chronologically.
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
