"""
WorkflowEngine - advances due multi-step workflows one step per sweep.

A workflow is picked up when it is active and its ``next_action_at`` has
passed. The current step runs through the agentic loop as
``workflow_<type>``; on success the step is stamped completed and
``current_step`` moves forward, on failure the error is kept in the
workflow metadata and the step is retried later.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Set

from ..constants import STEP_RESULT_MAX_CHARS, WORKFLOW_ERROR_MAX_CHARS
from ..llm import ModelRouter
from ..orchestrator.runner import DirectiveRunner, OwnerContext, load_owner_context
from ..runtime import RunSummary, RuntimeBudget
from .models import STEP_COMPLETED, Workflow, WorkflowStatus
from .templates import build_steps

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_step_directive(workflow: Workflow) -> str:
    step = workflow.current
    lines = [
        f"Advancing workflow: {workflow.workflow_type}",
        f"Step {workflow.current_step + 1} of {workflow.total_steps}: {step.name}",
    ]
    if step.description:
        lines.append(f"Goal: {step.description}")
    if step.tool_name:
        lines.append(f"Tool to use: {step.tool_name}")
    if step.tool_params:
        lines.append(f"Parameters: {json.dumps(step.tool_params, default=str)}")
    lines.append(f"Workflow metadata: {json.dumps(workflow.metadata or {}, default=str)}")
    lines.append("")
    lines.append(
        "Please execute this workflow step. If the step has a specific tool, call it. "
        "Otherwise, determine the appropriate action."
    )
    return "\n".join(lines)


class WorkflowEngine:

    def __init__(
        self,
        store,
        runner: DirectiveRunner,
        router: Optional[ModelRouter] = None,
        sweep_limit: int = 10,
        step_interval: timedelta = timedelta(hours=1),
        retry_delay: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._runner = runner
        self._router = router or ModelRouter()
        self.sweep_limit = sweep_limit
        self.step_interval = step_interval
        self.retry_delay = retry_delay
        self._clock = clock

    async def create_workflow(
        self,
        user_id: str,
        workflow_type: str,
        property_id: Optional[str] = None,
        tenancy_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        start_at: Optional[datetime] = None,
    ) -> Workflow:
        """Start a workflow from its template. Raises ValueError for unknown types."""
        steps = build_steps(workflow_type, {"property_id": property_id, "tenancy_id": tenancy_id})
        workflow = Workflow(
            user_id=user_id,
            workflow_type=workflow_type,
            steps=steps,
            current_step=0,
            status=WorkflowStatus.ACTIVE,
            property_id=property_id,
            tenancy_id=tenancy_id,
            next_action_at=start_at or self._clock(),
            metadata=dict(metadata or {}),
        )
        workflow.id = await self._store.workflows.create(workflow)
        logger.info(f"[Workflows] created {workflow_type} workflow {workflow.id} for {user_id}")
        return workflow

    async def advance_due(
        self,
        summary: RunSummary,
        budget: RuntimeBudget,
        user_id: Optional[str] = None,
        owner: Optional[OwnerContext] = None,
    ) -> int:
        """Advance every due workflow by one step. Returns how many were advanced."""
        due = await self._store.workflows.due(self._clock(), limit=self.sweep_limit, user_id=user_id)
        owners: Dict[str, OwnerContext] = {owner.user_id: owner} if owner else {}
        seen: Set[str] = set()
        advanced = 0

        for workflow in due:
            if workflow.id in seen:
                continue
            seen.add(workflow.id)
            if budget.expired():
                logger.warning("[Workflows] runtime budget exhausted, remaining workflows wait for the next run")
                break
            if await self._advance(workflow, owners, summary):
                advanced += 1

        summary.workflows_advanced += advanced
        return advanced

    async def _advance(self, workflow: Workflow, owners: Dict[str, OwnerContext], summary: RunSummary) -> bool:
        step = workflow.current
        if step is None:
            workflow.status = WorkflowStatus.COMPLETED
            workflow.next_action_at = None
            await self._store.workflows.save_progress(workflow)
            logger.info(f"[Workflows] {workflow.id} has no remaining steps, marked completed")
            return True

        try:
            owner = owners.get(workflow.user_id)
            if owner is None:
                owner = await load_owner_context(self._store, workflow.user_id)
                owners[workflow.user_id] = owner
            result = await self._runner.run(
                owner,
                build_step_directive(workflow),
                source_tag=workflow.source_tag,
                routing=self._router.for_workflow(workflow.workflow_type),
                event_type="workflow_advanced",
                description="You are advancing a scheduled workflow step.",
                property_id=workflow.property_id,
                context_snapshot={
                    "workflow_id": workflow.id,
                    "step": workflow.current_step + 1,
                    "total_steps": workflow.total_steps,
                    "step_name": step.name,
                },
            )
        except Exception as e:
            logger.error(f"[Workflows] {workflow.id} step {workflow.current_step + 1} failed: {e}")
            summary.errors.append(f"Workflow {workflow.id}: {e}")
            await self._schedule_retry(workflow, e)
            return False

        now = self._clock()
        step.status = STEP_COMPLETED
        step.result = result.response[:STEP_RESULT_MAX_CHARS]
        step.completed_at = now.isoformat()
        workflow.current_step += 1
        if workflow.current_step >= workflow.total_steps:
            workflow.status = WorkflowStatus.COMPLETED
            workflow.next_action_at = None
        else:
            workflow.next_action_at = now + self.step_interval

        saved = await self._store.workflows.save_progress(workflow)
        if not saved:
            logger.warning(f"[Workflows] {workflow.id} changed underneath this sweep, progress not saved")
        summary.add_loop(result)
        logger.info(
            f"[Workflows] {workflow.id} ({workflow.workflow_type}) at step "
            f"{workflow.current_step}/{workflow.total_steps}, status {workflow.status.value}"
        )
        return True

    async def _schedule_retry(self, workflow: Workflow, error: Exception) -> None:
        now = self._clock()
        workflow.metadata = {
            **(workflow.metadata or {}),
            "last_error": (str(error) or type(error).__name__)[:WORKFLOW_ERROR_MAX_CHARS],
            "last_error_at": now.isoformat(),
        }
        workflow.next_action_at = now + self.retry_delay
        try:
            await self._store.workflows.save_progress(workflow)
        except Exception as e:
            logger.error(f"[Workflows] could not schedule retry for {workflow.id}: {e}")
