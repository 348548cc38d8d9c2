from typing import Optional

import logging

from fastapi import APIRouter, Depends, Query, Response

from ..boundary import Boundary
from ..gate import require_identity
from ..schemas import CreateEventPayload, Event, EventPage, EventPatchPayload
from . import get_boundary

router = APIRouter(prefix="/api/v1", tags=["events"], dependencies=[Depends(require_identity)])
logger = logging.getLogger(__name__)


@router.get("/babies/{baby_id}/events", response_model=EventPage)
async def list_events(
    baby_id: str,
    limit: Optional[int] = Query(None, description="Page size (default 20, max 100)"),
    cursor: Optional[str] = Query(None, description="nextCursor from the previous page"),
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> EventPage:
    """Return one page of events for the baby, newest first."""

    page = boundary.list_events(identity, baby_id, limit=limit, cursor=cursor)
    logger.info(
        "events page",
        extra={
            "baby_id": baby_id,
            "count": len(page.items),
            "has_more": page.next_cursor is not None,
        },
    )
    return page


@router.post("/babies/{baby_id}/events", response_model=Event, status_code=201)
async def create_event(
    baby_id: str,
    payload: CreateEventPayload,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Event:
    return boundary.create_event(identity, baby_id, type_id=payload.type_id, note=payload.note)


@router.get("/events/{event_id}", response_model=Event)
async def get_event(
    event_id: str,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Event:
    return boundary.get_event(identity, event_id)


@router.patch("/events/{event_id}", response_model=Event)
async def patch_event(
    event_id: str,
    payload: EventPatchPayload,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Event:
    return boundary.patch_event(identity, event_id, payload.model_dump(exclude_unset=True))


@router.delete("/events/{event_id}", status_code=204)
async def remove_event(
    event_id: str,
    identity: str = Depends(require_identity),
    boundary: Boundary = Depends(get_boundary),
) -> Response:
    boundary.remove_event(identity, event_id)
    return Response(status_code=204)
