"""Domain event queue: records, directive templates and the queue processor."""

from .models import PRIORITY_RANK, Event, EventPriority, parse_priority
from .prompts import EVENT_TEMPLATES, build_event_directive

__all__ = [
    "PRIORITY_RANK",
    "Event",
    "EventPriority",
    "parse_priority",
    "EVENT_TEMPLATES",
    "build_event_directive",
]
