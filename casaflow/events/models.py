"""Domain event records."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..constants import SOURCE_TRIGGER_PREFIX
from ..models import json_column


class EventPriority(str, Enum):
    INSTANT = "instant"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


PRIORITY_RANK: Dict[EventPriority, int] = {
    EventPriority.INSTANT: 0,
    EventPriority.HIGH: 1,
    EventPriority.NORMAL: 2,
    EventPriority.LOW: 3,
}


def parse_priority(value: Any) -> EventPriority:
    try:
        return EventPriority(value or EventPriority.NORMAL.value)
    except ValueError:
        return EventPriority.NORMAL


@dataclass
class Event:
    """A queued domain event (payment failed, lease expiring, ...).

    Created by database triggers or the proactive scanners; marked processed
    exactly once by the queue processor and never deleted.
    """
    event_type: str
    user_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: EventPriority = EventPriority.NORMAL
    property_id: Optional[str] = None
    processed: bool = False
    processed_at: Optional[datetime] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def source_tag(self) -> str:
        return f"{SOURCE_TRIGGER_PREFIX}{self.event_type}"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self.priority]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "user_id": self.user_id,
            "payload": self.payload,
            "priority": self.priority.value,
            "property_id": self.property_id,
            "processed": self.processed,
            "processed_at": self.processed_at,
            "error": self.error,
            "attempts": self.attempts,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Event":
        row = dict(row)
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            event_type=row["event_type"],
            user_id=str(row["user_id"]),
            payload=json_column(row.get("payload"), {}) or {},
            priority=parse_priority(row.get("priority")),
            property_id=str(row["property_id"]) if row.get("property_id") else None,
            processed=bool(row.get("processed")),
            processed_at=row.get("processed_at"),
            error=row.get("error"),
            attempts=int(row.get("attempts") or 0),
            created_at=row.get("created_at"),
        )
