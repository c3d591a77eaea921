"""Domain event ingestion route."""

from fastapi import APIRouter, Depends

from ...events.models import Event, parse_priority
from ..app import require_app
from ..auth import verify_service_key
from ..models import EventRequest, EventResponse

router = APIRouter()


@router.post("/api/events", response_model=EventResponse, dependencies=[Depends(verify_service_key)])
async def enqueue_event(req: EventRequest):
    """Queue a domain event for the next instant run."""
    app = require_app()
    event_id = await app.enqueue_event(Event(
        event_type=req.event_type,
        user_id=req.user_id,
        payload=req.payload,
        priority=parse_priority(req.priority),
        property_id=req.property_id,
    ))
    return EventResponse(id=event_id)
