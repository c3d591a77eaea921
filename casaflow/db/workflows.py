"""Workflow repository."""

import logging
from datetime import datetime
from typing import List, Optional

from ..workflows.models import Workflow, WorkflowStatus
from .repository import Repository

logger = logging.getLogger(__name__)


class WorkflowRepository(Repository):
    TABLE_NAME = "agent_workflows"

    async def create(self, workflow: Workflow) -> str:
        row = await self._insert({
            "user_id": workflow.user_id,
            "property_id": workflow.property_id,
            "tenancy_id": workflow.tenancy_id,
            "workflow_type": workflow.workflow_type,
            "steps": [s.to_dict() for s in workflow.steps],
            "current_step": workflow.current_step,
            "total_steps": workflow.total_steps,
            "status": workflow.status.value,
            "next_action_at": workflow.next_action_at,
            "metadata": workflow.metadata,
        }, returning="id")
        return str(row["id"])

    async def due(self, now: datetime, limit: int = 10, user_id: Optional[str] = None) -> List[Workflow]:
        if user_id:
            rows = await self._fetch_many(
                "status = 'active' AND next_action_at <= $1 AND user_id = $2", (now, user_id),
                order_by="next_action_at ASC", limit=limit,
            )
        else:
            rows = await self._fetch_many(
                "status = 'active' AND next_action_at <= $1", (now,),
                order_by="next_action_at ASC", limit=limit,
            )
        return [Workflow.from_row(r) for r in rows]

    async def save_progress(self, workflow: Workflow) -> bool:
        """Persist step state. Never moves ``current_step`` backwards."""
        return await self._update_one(
            "UPDATE agent_workflows SET steps = $2, current_step = $3, status = $4, "
            "next_action_at = $5, metadata = $6, updated_at = NOW() "
            "WHERE id = $1 AND status = 'active' AND current_step <= $3",
            workflow.id,
            [s.to_dict() for s in workflow.steps],
            workflow.current_step,
            workflow.status.value,
            workflow.next_action_at,
            workflow.metadata,
        )

    async def has_active(
        self,
        workflow_type: str,
        user_id: str,
        tenancy_id: Optional[str] = None,
        property_id: Optional[str] = None,
    ) -> bool:
        if tenancy_id:
            found = await self.db.fetchval(
                "SELECT EXISTS (SELECT 1 FROM agent_workflows WHERE workflow_type = $1 AND user_id = $2 "
                "AND tenancy_id = $3 AND status = 'active')",
                workflow_type, user_id, tenancy_id,
            )
        else:
            found = await self.db.fetchval(
                "SELECT EXISTS (SELECT 1 FROM agent_workflows WHERE workflow_type = $1 AND user_id = $2 "
                "AND property_id = $3 AND status = 'active')",
                workflow_type, user_id, property_id,
            )
        return bool(found)

    async def list_for_user(self, user_id: str, status: WorkflowStatus = WorkflowStatus.ACTIVE) -> List[Workflow]:
        rows = await self._fetch_many(
            "user_id = $1 AND status = $2", (user_id, status.value), order_by="created_at DESC",
        )
        return [Workflow.from_row(r) for r in rows]
