"""
OrchestratorService - one scheduled or on-demand orchestrator invocation.

``instant`` drains the event queue and then advances due workflows for all
owners while the runtime budget allows. ``daily``, ``weekly`` and
``monthly`` hand over to the batch review scheduler. Every run returns a
RunSummary, drains outstanding side effects and writes a run_summary audit
line, including on failure.
"""

import logging
from typing import Optional

from ..audit_logger import AuditLogger
from ..background import BackgroundTasks
from ..batch.scheduler import BatchReviewScheduler
from ..constants import MODE_INSTANT, RUN_MODES
from ..events.processor import EventQueueProcessor
from ..runtime import DEFAULT_MAX_RUNTIME_SECONDS, RunSummary, RuntimeBudget
from ..workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)


class OrchestratorService:

    def __init__(
        self,
        events: EventQueueProcessor,
        workflows: WorkflowEngine,
        batch: BatchReviewScheduler,
        background: Optional[BackgroundTasks] = None,
        audit: Optional[AuditLogger] = None,
        max_runtime_seconds: float = DEFAULT_MAX_RUNTIME_SECONDS,
    ):
        self._events = events
        self._workflows = workflows
        self._batch = batch
        self.background = background or BackgroundTasks()
        self._audit = audit or AuditLogger()
        self.max_runtime_seconds = max_runtime_seconds

    async def run(
        self,
        mode: str = MODE_INSTANT,
        user_id: Optional[str] = None,
        property_id: Optional[str] = None,
        max_properties: Optional[int] = None,
    ) -> RunSummary:
        """Run one invocation. Raises ValueError for an unknown mode."""
        if mode not in RUN_MODES:
            raise ValueError(f"Unknown orchestrator mode: {mode}")

        budget = RuntimeBudget(self.max_runtime_seconds)
        summary = RunSummary(mode=mode)
        logger.info(f"[Orchestrator] {mode} run started (user={user_id or 'all'})")
        try:
            if mode == MODE_INSTANT:
                await self._events.process(summary, budget, user_id=user_id)
                if not budget.expired():
                    await self._workflows.advance_due(summary, budget, user_id=user_id)
                else:
                    logger.warning("[Orchestrator] runtime budget exhausted before workflow sweep")
            else:
                await self._batch.run(
                    mode, summary, budget,
                    user_id=user_id, property_id=property_id, max_properties=max_properties,
                )
        finally:
            await self.background.drain()
            summary.duration_ms = budget.elapsed_ms
            self._audit.log_run_summary(mode, summary.to_dict())

        logger.info(
            f"[Orchestrator] {mode} run finished in {summary.duration_ms}ms: "
            f"events={summary.events_processed}, workflows={summary.workflows_advanced}, "
            f"actions={summary.actions_taken}, errors={len(summary.errors)}"
        )
        return summary
