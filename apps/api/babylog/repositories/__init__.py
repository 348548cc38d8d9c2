"""Repository backends and the factory that picks one from configuration."""
from __future__ import annotations

import logging

from ..clock import Clock, utc_now
from ..config import AppConfig
from .base import (
    UNSET,
    AuthRepository,
    BabyRepository,
    EventRepository,
    EventTypeRepository,
    Repositories,
)
from .memory import build_memory_repositories
from .sqlite import build_sqlite_repositories

logger = logging.getLogger(__name__)

__all__ = [
    "UNSET",
    "AuthRepository",
    "BabyRepository",
    "EventRepository",
    "EventTypeRepository",
    "Repositories",
    "build_repositories",
    "seed",
]


def build_repositories(config: AppConfig, *, clock: Clock = utc_now) -> Repositories:
    """Construct the configured backend and seed it."""
    if config.backend == "sqlite":
        repos = build_sqlite_repositories(
            config.resolved_database_path,
            clock=clock,
            rounds=config.password_hash_rounds,
        )
    else:
        repos = build_memory_repositories(clock=clock, rounds=config.password_hash_rounds)
    logger.info("repositories ready", extra={"backend": config.backend})
    seed(repos, config)
    return repos


def seed(repos: Repositories, config: AppConfig) -> None:
    """Create the household fixtures if they are not there yet."""
    for email in config.allowed_emails:
        if repos.auth.get(email) is None:
            repos.auth.create(email, config.default_password)
            logger.info("seeded user", extra={"email": email})

    owner = config.allowed_emails[0]
    baby = repos.babies.for_identity(owner)
    if baby is None:
        baby = repos.babies.create(config.baby_id, config.baby_name, config.allowed_emails)
        logger.info("seeded baby", extra={"baby_id": baby.id})

    if not repos.event_types.list(baby.id):
        for position, name in enumerate(config.default_event_types, start=1):
            repos.event_types.create(
                baby_id=baby.id,
                name=name,
                created_by=owner,
                active=True,
                order=float(position),
            )
        logger.info(
            "seeded event types",
            extra={"baby_id": baby.id, "count": len(config.default_event_types)},
        )
