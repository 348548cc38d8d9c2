"""Opaque pagination cursors for event listings."""
from __future__ import annotations

import base64
import binascii
import json
from datetime import datetime
from typing import Optional, Tuple

from ..clock import from_iso, to_iso
from ..errors import ValidationFailure

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

Position = Tuple[datetime, str]


def encode_cursor(happened_at: datetime, event_id: str) -> str:
    raw = json.dumps([to_iso(happened_at), event_id], separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Position:
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        happened_at, event_id = json.loads(raw)
        if not isinstance(happened_at, str) or not isinstance(event_id, str):
            raise TypeError("cursor fields must be strings")
        return from_iso(happened_at), event_id
    except (binascii.Error, UnicodeError, TypeError, ValueError, OverflowError) as exc:
        raise ValidationFailure("Invalid cursor") from exc


def resolve_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    if limit < 1:
        raise ValidationFailure("limit must be at least 1")
    return min(limit, MAX_LIMIT)
