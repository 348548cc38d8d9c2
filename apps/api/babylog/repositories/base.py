"""Repository contracts.

Every backend implements these four interfaces with identical observable
behaviour; nothing outside :mod:`babylog.repositories` may depend on which
concrete backend is active.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..schemas import Baby, Event, EventPage, EventType, User

# Marks a patch argument the caller did not supply (``None`` is a real value
# for nullable fields such as ``note``).
UNSET = object()


class AuthRepository(ABC):
    @abstractmethod
    def get(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def create(self, email: str, password: str, display_name: Optional[str] = None) -> User:
        """Store a new user; only the bcrypt hash of ``password`` is kept."""

    @abstractmethod
    def verify_password(self, email: str, password: str) -> bool:
        ...

    @abstractmethod
    def set_password(self, email: str, password: str) -> None:
        ...


class BabyRepository(ABC):
    @abstractmethod
    def for_identity(self, email: str) -> Optional[Baby]:
        """Return the baby ``email`` is a parent of, or ``None``."""

    @abstractmethod
    def create(self, baby_id: str, name: str, parent_ids: Iterable[str]) -> Baby:
        ...


class EventTypeRepository(ABC):
    @abstractmethod
    def list(self, baby_id: str) -> List[EventType]:
        """All types for the baby, active or not, by ``order``."""

    @abstractmethod
    def create(
        self,
        *,
        baby_id: str,
        name: str,
        created_by: str,
        active: bool = True,
        order: Optional[float] = None,
    ) -> EventType:
        ...

    @abstractmethod
    def patch(
        self,
        type_id: str,
        *,
        name: object = UNSET,
        active: object = UNSET,
        order: object = UNSET,
    ) -> EventType:
        ...

    @abstractmethod
    def remove(self, type_id: str) -> None:
        ...


class EventRepository(ABC):
    @abstractmethod
    def list(self, baby_id: str, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> EventPage:
        """Newest first by ``happened_at`` then ``id``; resumes strictly after ``cursor``."""

    @abstractmethod
    def get(self, event_id: str) -> Event:
        ...

    @abstractmethod
    def create(self, *, baby_id: str, type_id: str, created_by: str, note: Optional[str] = None) -> Event:
        """Store a new event; ``happened_at`` is stamped here and never again."""

    @abstractmethod
    def patch(self, event_id: str, *, type_id: object = UNSET, note: object = UNSET) -> Event:
        ...

    @abstractmethod
    def remove(self, event_id: str) -> None:
        ...


@dataclass(frozen=True)
class Repositories:
    auth: AuthRepository
    babies: BabyRepository
    event_types: EventTypeRepository
    events: EventRepository
