"""
EventQueueProcessor - drains the agent event queue.

Events are fetched most urgent first and handled in small concurrent
batches. Each event gets its own directive, runs through the agentic loop
as ``trigger_<event_type>`` and is then marked processed. The runtime budget
is checked before every batch; events not reached stay queued for the next
invocation.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..constants import EVENT_ERROR_MAX_CHARS
from ..errors import UpstreamError
from ..llm import ModelRouter
from ..orchestrator.runner import DirectiveRunner, OwnerContext, load_owner_context
from ..runtime import RunSummary, RuntimeBudget
from .models import Event
from .prompts import build_event_directive

logger = logging.getLogger(__name__)

DEAD_LETTER_PREFIX = "dead_letter: "


class EventQueueProcessor:

    def __init__(
        self,
        store,
        runner: DirectiveRunner,
        router: Optional[ModelRouter] = None,
        batch_limit: int = 20,
        concurrency: int = 3,
        max_attempts: int = 3,
    ):
        self._store = store
        self._runner = runner
        self._router = router or ModelRouter()
        self.batch_limit = batch_limit
        self.concurrency = concurrency
        self.max_attempts = max_attempts

    async def process(self, summary: RunSummary, budget: RuntimeBudget, user_id: Optional[str] = None) -> None:
        events = await self._store.events.fetch_unprocessed(limit=self.batch_limit, user_id=user_id)
        if not events:
            return
        # The store orders by priority already; keep the order stable if it did not
        events = sorted(events, key=lambda e: e.rank)
        logger.info(f"[Events] {len(events)} unprocessed event(s)")

        owners: Dict[str, OwnerContext] = {}
        for i in range(0, len(events), self.concurrency):
            if budget.expired():
                logger.warning(
                    f"[Events] runtime budget exhausted, {len(events) - i} event(s) left for the next run"
                )
                break
            batch = events[i:i + self.concurrency]
            await asyncio.gather(*(self._process_one(event, owners, summary) for event in batch))

    async def _process_one(self, event: Event, owners: Dict[str, OwnerContext], summary: RunSummary) -> None:
        summary.processed += 1
        try:
            owner = owners.get(event.user_id)
            if owner is None:
                owner = await load_owner_context(self._store, event.user_id)
                owners[event.user_id] = owner
            result = await self._runner.run(
                owner,
                build_event_directive(event),
                source_tag=event.source_tag,
                routing=self._router.for_event(event.event_type),
                event_type="action_taken",
                description="You are processing a real-time event triggered by a database change.",
                property_id=event.property_id,
                context_snapshot={"event_payload": event.payload, "event_id": event.id},
                show_property=True,
            )
            if await self._store.events.mark_processed(event.id):
                summary.events_processed += 1
            summary.add_loop(result)
        except Exception as e:
            logger.error(f"[Events] event {event.id} ({event.event_type}) failed: {e}")
            summary.errors.append(f"Event {event.id}: {e}")
            if await self._record_failure(event, e):
                summary.events_processed += 1

    async def _record_failure(self, event: Event, error: Exception) -> bool:
        """Mark a failed event processed, or leave it queued for a retry. True when marked."""
        message = (str(error) or type(error).__name__)[:EVENT_ERROR_MAX_CHARS]
        try:
            if isinstance(error, UpstreamError) and error.retryable:
                attempts = await self._store.events.record_failed_attempt(event.id, message)
                if attempts < self.max_attempts:
                    logger.info(f"[Events] event {event.id} will be retried (attempt {attempts}/{self.max_attempts})")
                    return False
                message = (DEAD_LETTER_PREFIX + message)[:EVENT_ERROR_MAX_CHARS]
                logger.warning(f"[Events] event {event.id} dead-lettered after {attempts} attempts")
            return await self._store.events.mark_processed(event.id, error=message)
        except Exception as e:
            logger.error(f"[Events] could not record failure of event {event.id}: {e}")
            return False
