"""Pydantic schemas shared across the API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
)
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class User(ApiModel):
    email: str
    display_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Baby(ApiModel):
    id: str
    name: str
    parent_ids: List[str]
    created_at: datetime

    @field_validator("parent_ids")
    @classmethod
    def _has_parents(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("a baby needs at least one parent")
        return sorted(set(value))

    def has_parent(self, identity: str) -> bool:
        return identity in self.parent_ids


class EventType(ApiModel):
    id: str
    baby_id: str
    name: str
    active: bool = True
    order: float
    created_by: str
    created_at: datetime
    updated_at: datetime


class Event(ApiModel):
    id: str
    baby_id: str
    type_id: str
    note: Optional[str] = None
    happened_at: datetime
    created_by: str
    created_at: datetime
    updated_at: datetime


class EventPage(ApiModel):
    items: List[Event]
    next_cursor: Optional[str] = Field(
        default=None,
        description="Resume token; omitted on the last page",
    )

    @model_serializer(mode="wrap")
    def _omit_empty_cursor(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        data = handler(self)
        if self.next_cursor is None:
            data.pop("nextCursor", None)
            data.pop("next_cursor", None)
        return data


class Me(ApiModel):
    user: User
    baby: Optional[Baby] = None


# Request payloads. Unknown fields are rejected so audit fields can never
# ride along with a write.


class StrictPayload(ApiModel):
    model_config = ConfigDict(extra="forbid")


class SignInPayload(StrictPayload):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordPayload(StrictPayload):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class CreateEventTypePayload(StrictPayload):
    name: str = Field(..., min_length=1)
    active: bool = True
    order: Optional[float] = Field(default=None, allow_inf_nan=False)


class EventTypePatchPayload(StrictPayload):
    name: Optional[str] = None
    active: Optional[bool] = None
    order: Optional[float] = Field(default=None, allow_inf_nan=False)


class CreateEventPayload(StrictPayload):
    type_id: str = Field(..., min_length=1)
    note: Optional[str] = None


class EventPatchPayload(StrictPayload):
    type_id: Optional[str] = None
    note: Optional[str] = None
