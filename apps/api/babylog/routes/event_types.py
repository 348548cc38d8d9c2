from typing import List

import logging

from fastapi import APIRouter, Depends, Response

from ..boundary import Boundary
from ..gate import require_identity
from ..schemas import CreateEventTypePayload, EventType, EventTypePatchPayload
from . import get_boundary

router = APIRouter(prefix="/api/v1", tags=["event-types"], dependencies=[Depends(require_identity)])
logger = logging.getLogger(__name__)


@router.get("/babies/{baby_id}/event-types", response_model=List[EventType])
async def list_event_types(
    baby_id: str,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> List[EventType]:
    """Return every event type for the baby; clients filter on ``active``."""

    return boundary.list_event_types(identity, baby_id)


@router.post("/babies/{baby_id}/event-types", response_model=EventType, status_code=201)
async def create_event_type(
    baby_id: str,
    payload: CreateEventTypePayload,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> EventType:
    return boundary.create_event_type(
        identity,
        baby_id,
        name=payload.name,
        active=payload.active,
        order=payload.order,
    )


@router.patch("/event-types/{type_id}", response_model=EventType)
async def patch_event_type(
    type_id: str,
    payload: EventTypePatchPayload,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> EventType:
    return boundary.patch_event_type(identity, type_id, payload.model_dump(exclude_unset=True))


@router.delete("/event-types/{type_id}", status_code=204)
async def remove_event_type(
    type_id: str,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Response:
    boundary.remove_event_type(identity, type_id)
    return Response(status_code=204)
