"""Password hashing for the auth repositories."""
from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Check ``password`` against a bcrypt hash.

    ``bcrypt.checkpw`` compares in constant time. A malformed stored hash
    counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.error("stored password hash is malformed")
        return False
