"""
Event queue and agent event log repositories.

agent_event_queue holds incoming domain events; agent_events is the audit
log of every orchestrated directive (one row per event, review or workflow
step the agent handled).
"""

import logging
from typing import Any, Dict, List, Optional

from ..events.models import Event
from .repository import Repository

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = (
    "CASE priority WHEN 'instant' THEN 0 WHEN 'high' THEN 1 "
    "WHEN 'normal' THEN 2 WHEN 'low' THEN 3 ELSE 2 END"
)


class EventRepository(Repository):
    TABLE_NAME = "agent_event_queue"

    async def enqueue(self, event: Event) -> str:
        row = await self._insert({
            "event_type": event.event_type,
            "user_id": event.user_id,
            "property_id": event.property_id,
            "priority": event.priority.value,
            "payload": event.payload,
        }, returning="id")
        return str(row["id"])

    async def fetch_unprocessed(self, limit: int = 20, user_id: Optional[str] = None) -> List[Event]:
        """Unprocessed events, most urgent first, oldest first within a priority."""
        if user_id:
            rows = await self._fetch_many(
                "processed = false AND user_id = $1", (user_id,),
                order_by=f"{_PRIORITY_ORDER}, created_at ASC", limit=limit,
            )
        else:
            rows = await self._fetch_many(
                "processed = false",
                order_by=f"{_PRIORITY_ORDER}, created_at ASC", limit=limit,
            )
        return [Event.from_row(r) for r in rows]

    async def mark_processed(self, event_id: str, error: Optional[str] = None) -> bool:
        """Mark an event processed. Returns False if it already was."""
        return await self._update_one(
            "UPDATE agent_event_queue SET processed = true, processed_at = NOW(), error = $2 "
            "WHERE id = $1 AND processed = false",
            event_id, error,
        )

    async def record_failed_attempt(self, event_id: str, error: str) -> int:
        """Increment the attempt counter of a still-unprocessed event."""
        attempts = await self.db.fetchval(
            "UPDATE agent_event_queue SET attempts = attempts + 1, error = $2 "
            "WHERE id = $1 AND processed = false RETURNING attempts",
            event_id, error,
        )
        return int(attempts or 0)

    async def has_unprocessed(
        self,
        event_type: str,
        user_id: str,
        entity_key: str,
        entity_id: str,
    ) -> bool:
        """True if an equivalent event for the same entity is still queued."""
        found = await self.db.fetchval(
            "SELECT EXISTS (SELECT 1 FROM agent_event_queue WHERE event_type = $1 "
            "AND user_id = $2 AND processed = false AND payload->>$3 = $4)",
            event_type, user_id, entity_key, str(entity_id),
        )
        return bool(found)


class EventLogRepository(Repository):
    TABLE_NAME = "agent_events"

    async def record(
        self,
        user_id: str,
        event_source: str,
        event_type: str,
        model: Optional[str],
        reasoning: str,
        tools_called: List[Dict[str, Any]],
        actions_taken: int,
        tokens_used: int,
        duration_ms: int,
        context_snapshot: Optional[Dict[str, Any]] = None,
        property_id: Optional[str] = None,
    ) -> None:
        await self._insert({
            "user_id": user_id,
            "event_source": event_source,
            "event_type": event_type,
            "property_id": property_id,
            "model": model,
            "context_snapshot": context_snapshot or {},
            "reasoning": reasoning,
            "tools_called": tools_called,
            "actions_taken": actions_taken,
            "tokens_used": tokens_used,
            "duration_ms": duration_ms,
        }, returning="id")
