"""Read/write boundary between the HTTP surface and the repositories.

This is the only layer that turns "who is calling" into repository calls.
Reads and writes both resolve the caller's baby before touching data, and
every patch is checked against an explicit allow-list of fields. A patch
naming anything else, audit fields included, is rejected whole before
storage is touched.
"""
from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from pydantic.alias_generators import to_snake

from .errors import IntegrityFailure, NotFound, Unauthenticated, Unauthorized, ValidationFailure
from .repositories import Repositories
from .schemas import Baby, Event, EventPage, EventType, Me, User
from .session import SessionCodec

logger = logging.getLogger(__name__)

EVENT_PATCH_FIELDS: FrozenSet[str] = frozenset({"type_id", "note"})
EVENT_TYPE_PATCH_FIELDS: FrozenSet[str] = frozenset({"name", "active", "order"})


def guard_patch(patch: Mapping[str, Any], allowed: FrozenSet[str]) -> Dict[str, Any]:
    """Normalize patch keys to snake_case and reject anything off the allow-list."""
    if not patch:
        raise ValidationFailure("patch must name at least one field")
    normalized: Dict[str, Any] = {}
    for key, value in patch.items():
        field = to_snake(key)
        if field not in allowed:
            raise ValidationFailure(f"field '{key}' cannot be changed")
        normalized[field] = value
    return normalized


def _clean_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailure("name must be a non-empty string")
    return value.strip()


def _clean_note(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailure("note must be a string")
    return value


class Boundary:
    def __init__(self, repos: Repositories, codec: SessionCodec) -> None:
        self._repos = repos
        self._codec = codec

    # -- identity -------------------------------------------------------

    def sign_in(self, email: str, password: str) -> Tuple[User, str]:
        """Check the credential pair and return the user with a fresh session token."""
        if not self._repos.auth.verify_password(email, password):
            logger.info("sign-in rejected", extra={"email": email})
            raise Unauthenticated()
        user = self._repos.auth.get(email)
        if user is None:
            raise Unauthenticated()
        logger.info("sign-in accepted", extra={"email": user.email})
        return user, self._codec.issue(user.email)

    def current_user(self, identity: Optional[str]) -> User:
        if not identity:
            raise Unauthenticated()
        user = self._repos.auth.get(identity)
        if user is None:
            # Token outlived its user.
            raise Unauthenticated()
        return user

    def current_baby(self, identity: Optional[str]) -> Optional[Baby]:
        user = self.current_user(identity)
        return self._repos.babies.for_identity(user.email)

    def me(self, identity: Optional[str]) -> Me:
        user = self.current_user(identity)
        return Me(user=user, baby=self.current_baby(user.email))

    def change_password(self, identity: Optional[str], current_password: str, new_password: str) -> None:
        writer = self._writer(identity)
        if not self._repos.auth.verify_password(writer, current_password):
            raise ValidationFailure("current password is incorrect")
        self._repos.auth.set_password(writer, new_password)
        logger.info("password changed", extra={"email": writer})

    # -- reads ----------------------------------------------------------

    def list_event_types(self, identity: Optional[str], baby_id: str) -> List[EventType]:
        baby = self._scope(self.current_user(identity).email, baby_id)
        return self._repos.event_types.list(baby.id)

    def list_events(
        self,
        identity: Optional[str],
        baby_id: str,
        *,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> EventPage:
        baby = self._scope(self.current_user(identity).email, baby_id)
        return self._repos.events.list(baby.id, limit=limit, cursor=cursor)

    def get_event(self, identity: Optional[str], event_id: str) -> Event:
        caller = self.current_user(identity).email
        event = self._repos.events.get(event_id)
        self._scope(caller, event.baby_id)
        return event

    # -- event writes ---------------------------------------------------

    def create_event(
        self,
        identity: Optional[str],
        baby_id: str,
        *,
        type_id: str,
        note: Optional[str] = None,
    ) -> Event:
        writer = self._writer(identity)
        baby = self._scope(writer, baby_id)
        self._require_type(baby.id, type_id)
        event = self._repos.events.create(
            baby_id=baby.id,
            type_id=type_id,
            created_by=writer,
            note=_clean_note(note),
        )
        logger.info(
            "event created",
            extra={"event_id": event.id, "baby_id": baby.id, "type_id": type_id, "created_by": writer},
        )
        return event

    def patch_event(self, identity: Optional[str], event_id: str, patch: Mapping[str, Any]) -> Event:
        writer = self._writer(identity)
        changes = guard_patch(patch, EVENT_PATCH_FIELDS)
        event = self._repos.events.get(event_id)
        baby = self._scope(writer, event.baby_id)
        if "type_id" in changes:
            self._require_type(baby.id, changes["type_id"])
        if "note" in changes:
            changes["note"] = _clean_note(changes["note"])
        patched = self._repos.events.patch(event_id, **changes)
        logger.info(
            "event patched",
            extra={"event_id": event_id, "fields": sorted(changes), "updated_by": writer},
        )
        return patched

    def remove_event(self, identity: Optional[str], event_id: str) -> None:
        writer = self._writer(identity)
        event = self._repos.events.get(event_id)
        self._scope(writer, event.baby_id)
        self._repos.events.remove(event_id)
        logger.info("event removed", extra={"event_id": event_id, "removed_by": writer})

    # -- event type writes ----------------------------------------------

    def create_event_type(
        self,
        identity: Optional[str],
        baby_id: str,
        *,
        name: str,
        active: bool = True,
        order: Optional[float] = None,
    ) -> EventType:
        writer = self._writer(identity)
        baby = self._scope(writer, baby_id)
        if order is not None:
            order = self._clean_order(order)
        event_type = self._repos.event_types.create(
            baby_id=baby.id,
            name=_clean_name(name),
            created_by=writer,
            active=bool(active),
            order=order,
        )
        logger.info(
            "event type created",
            extra={"type_id": event_type.id, "baby_id": baby.id, "created_by": writer},
        )
        return event_type

    def patch_event_type(self, identity: Optional[str], type_id: str, patch: Mapping[str, Any]) -> EventType:
        writer = self._writer(identity)
        changes = guard_patch(patch, EVENT_TYPE_PATCH_FIELDS)
        baby = self._own_baby(writer)
        self._find_type(baby.id, type_id)
        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
        if "active" in changes and not isinstance(changes["active"], bool):
            raise ValidationFailure("active must be true or false")
        if "order" in changes:
            changes["order"] = self._clean_order(changes["order"])
        patched = self._repos.event_types.patch(type_id, **changes)
        logger.info(
            "event type patched",
            extra={"type_id": type_id, "fields": sorted(changes), "updated_by": writer},
        )
        return patched

    def remove_event_type(self, identity: Optional[str], type_id: str) -> None:
        writer = self._writer(identity)
        baby = self._own_baby(writer)
        self._find_type(baby.id, type_id)
        self._repos.event_types.remove(type_id)
        logger.info("event type removed", extra={"type_id": type_id, "removed_by": writer})

    # -- helpers --------------------------------------------------------

    def _writer(self, identity: Optional[str]) -> str:
        if not identity:
            logger.error("write reached the boundary without an identity")
            raise IntegrityFailure("write attempted without a resolved identity")
        return identity

    def _own_baby(self, identity: str) -> Baby:
        baby = self._repos.babies.for_identity(identity)
        if baby is None or not baby.has_parent(identity):
            raise Unauthorized()
        return baby

    def _scope(self, identity: str, baby_id: str) -> Baby:
        baby = self._own_baby(identity)
        if baby.id != baby_id:
            raise Unauthorized()
        return baby

    def _find_type(self, baby_id: str, type_id: str) -> EventType:
        for event_type in self._repos.event_types.list(baby_id):
            if event_type.id == type_id:
                return event_type
        raise NotFound(f"Event type {type_id} not found")

    def _require_type(self, baby_id: str, type_id: Any) -> EventType:
        if not isinstance(type_id, str) or not type_id:
            raise ValidationFailure("typeId is required")
        try:
            return self._find_type(baby_id, type_id)
        except NotFound:
            raise ValidationFailure(f"unknown event type {type_id}") from None

    @staticmethod
    def _clean_order(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, Real):
            raise ValidationFailure("order must be a number")
        if not math.isfinite(value):
            raise ValidationFailure("order must be a finite number")
        return float(value)
