"""Process-local reference backend.

Each entity family lives in a plain dict keyed by id. Ordering is applied
when reading, so insertion order never matters. Writes are visible to the
next read immediately.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..clock import Clock, new_id, utc_now
from ..errors import NotFound, ValidationFailure
from ..passwords import DEFAULT_ROUNDS, hash_password, verify_password
from ..schemas import Baby, Event, EventPage, EventType, User
from .base import (
    UNSET,
    AuthRepository,
    BabyRepository,
    EventRepository,
    EventTypeRepository,
    Repositories,
)
from .cursor import decode_cursor, encode_cursor, resolve_limit


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass
class _StoredUser:
    user: User
    password_hash: str


class MemoryAuthRepository(AuthRepository):
    def __init__(self, *, clock: Clock = utc_now, rounds: int = DEFAULT_ROUNDS) -> None:
        self._clock = clock
        self._rounds = rounds
        self._users: Dict[str, _StoredUser] = {}
        self._dummy_hash: Optional[str] = None

    def get(self, email: str) -> Optional[User]:
        stored = self._users.get(normalize_email(email))
        return stored.user if stored else None

    def create(self, email: str, password: str, display_name: Optional[str] = None) -> User:
        key = normalize_email(email)
        if not key:
            raise ValidationFailure("email is required")
        if key in self._users:
            raise ValidationFailure(f"user {key} already exists")
        now = self._clock()
        user = User(email=key, display_name=display_name, created_at=now, updated_at=now)
        self._users[key] = _StoredUser(user=user, password_hash=hash_password(password, rounds=self._rounds))
        return user

    def verify_password(self, email: str, password: str) -> bool:
        stored = self._users.get(normalize_email(email))
        if stored is None:
            # Spend a comparison anyway so unknown emails take as long as bad passwords.
            if self._dummy_hash is None:
                self._dummy_hash = hash_password(new_id(), rounds=self._rounds)
            verify_password(password, self._dummy_hash)
            return False
        return verify_password(password, stored.password_hash)

    def set_password(self, email: str, password: str) -> None:
        key = normalize_email(email)
        stored = self._users.get(key)
        if stored is None:
            raise NotFound(f"User {key} not found")
        stored.password_hash = hash_password(password, rounds=self._rounds)
        stored.user = stored.user.model_copy(update={"updated_at": self._clock()})


class MemoryBabyRepository(BabyRepository):
    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._babies: Dict[str, Baby] = {}

    def for_identity(self, email: str) -> Optional[Baby]:
        key = normalize_email(email)
        for baby in sorted(self._babies.values(), key=lambda item: item.id):
            if baby.has_parent(key):
                return baby
        return None

    def create(self, baby_id: str, name: str, parent_ids: Iterable[str]) -> Baby:
        if baby_id in self._babies:
            raise ValidationFailure(f"baby {baby_id} already exists")
        parents = [normalize_email(email) for email in parent_ids]
        if not parents:
            raise ValidationFailure("a baby needs at least one parent")
        baby = Baby(id=baby_id, name=name, parent_ids=parents, created_at=self._clock())
        self._babies[baby_id] = baby
        return baby


class MemoryEventTypeRepository(EventTypeRepository):
    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._types: Dict[str, EventType] = {}

    def list(self, baby_id: str) -> List[EventType]:
        rows = [item for item in self._types.values() if item.baby_id == baby_id]
        rows.sort(key=lambda item: (item.order, item.created_at, item.id))
        return rows

    def create(
        self,
        *,
        baby_id: str,
        name: str,
        created_by: str,
        active: bool = True,
        order: Optional[float] = None,
    ) -> EventType:
        if order is None:
            existing = [item.order for item in self._types.values() if item.baby_id == baby_id]
            order = max(existing, default=0) + 1
        now = self._clock()
        event_type = EventType(
            id=new_id(),
            baby_id=baby_id,
            name=name,
            active=active,
            order=order,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._types[event_type.id] = event_type
        return event_type

    def patch(
        self,
        type_id: str,
        *,
        name: object = UNSET,
        active: object = UNSET,
        order: object = UNSET,
    ) -> EventType:
        current = self._types.get(type_id)
        if current is None:
            raise NotFound(f"Event type {type_id} not found")
        updates: Dict[str, object] = {}
        if name is not UNSET:
            updates["name"] = name
        if active is not UNSET:
            updates["active"] = active
        if order is not UNSET:
            updates["order"] = order
        if not updates:
            return current
        updates["updated_at"] = self._clock()
        patched = current.model_copy(update=updates)
        self._types[type_id] = patched
        return patched

    def remove(self, type_id: str) -> None:
        if self._types.pop(type_id, None) is None:
            raise NotFound(f"Event type {type_id} not found")


class MemoryEventRepository(EventRepository):
    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._events: Dict[str, Event] = {}

    def list(self, baby_id: str, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> EventPage:
        page_size = resolve_limit(limit)
        rows = [item for item in self._events.values() if item.baby_id == baby_id]
        rows.sort(key=lambda item: (item.happened_at, item.id), reverse=True)
        if cursor:
            position = decode_cursor(cursor)
            rows = [item for item in rows if (item.happened_at, item.id) < position]
        items = rows[:page_size]
        next_cursor = None
        if len(rows) > page_size:
            last = items[-1]
            next_cursor = encode_cursor(last.happened_at, last.id)
        return EventPage(items=items, next_cursor=next_cursor)

    def get(self, event_id: str) -> Event:
        event = self._events.get(event_id)
        if event is None:
            raise NotFound(f"Event {event_id} not found")
        return event

    def create(self, *, baby_id: str, type_id: str, created_by: str, note: Optional[str] = None) -> Event:
        now = self._clock()
        event = Event(
            id=new_id(),
            baby_id=baby_id,
            type_id=type_id,
            note=note,
            happened_at=now,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self._events[event.id] = event
        return event

    def patch(self, event_id: str, *, type_id: object = UNSET, note: object = UNSET) -> Event:
        current = self.get(event_id)
        updates: Dict[str, object] = {}
        if type_id is not UNSET:
            updates["type_id"] = type_id
        if note is not UNSET:
            updates["note"] = note
        if not updates:
            return current
        updates["updated_at"] = self._clock()
        patched = current.model_copy(update=updates)
        self._events[event_id] = patched
        return patched

    def remove(self, event_id: str) -> None:
        if self._events.pop(event_id, None) is None:
            raise NotFound(f"Event {event_id} not found")


def build_memory_repositories(*, clock: Clock = utc_now, rounds: int = DEFAULT_ROUNDS) -> Repositories:
    return Repositories(
        auth=MemoryAuthRepository(clock=clock, rounds=rounds),
        babies=MemoryBabyRepository(clock=clock),
        event_types=MemoryEventTypeRepository(clock=clock),
        events=MemoryEventRepository(clock=clock),
    )
