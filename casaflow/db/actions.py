"""Pending action and decision repositories."""

import logging
from typing import Any, Dict, List, Optional

from ..models import PENDING_STATUS_PENDING, Decision, PendingAction
from .repository import Repository

logger = logging.getLogger(__name__)


class PendingActionRepository(Repository):
    TABLE_NAME = "agent_pending_actions"

    async def create(self, action: PendingAction) -> str:
        row = await self._insert({
            "user_id": action.user_id,
            "conversation_id": action.conversation_id,
            "action_type": action.action_type,
            "title": action.title,
            "description": action.description,
            "tool_name": action.tool_name,
            "tool_params": action.tool_params,
            "autonomy_level": action.autonomy_level,
            "recommendation": action.recommendation,
            "status": PENDING_STATUS_PENDING,
        }, returning="id")
        return str(row["id"])

    async def get(self, action_id: str, user_id: str) -> Optional[PendingAction]:
        row = await self._fetch_one("id = $1 AND user_id = $2", (action_id, user_id))
        return PendingAction.from_row(row) if row else None

    async def get_pending(self, action_id: str, user_id: str) -> Optional[PendingAction]:
        row = await self._fetch_one(
            "id = $1 AND user_id = $2 AND status = 'pending'", (action_id, user_id),
        )
        return PendingAction.from_row(row) if row else None

    async def resolve(self, action_id: str, user_id: str, status: str, resolved_by: str) -> bool:
        """Move a pending action to a terminal status. False if already resolved."""
        return await self._update_one(
            "UPDATE agent_pending_actions SET status = $3, resolved_by = $4, resolved_at = NOW() "
            "WHERE id = $1 AND user_id = $2 AND status = 'pending'",
            action_id, user_id, status, resolved_by,
        )

    async def list_pending(self, user_id: str, limit: int = 50) -> List[PendingAction]:
        rows = await self._fetch_many(
            "user_id = $1 AND status = 'pending'", (user_id,),
            order_by="created_at DESC", limit=limit,
        )
        return [PendingAction.from_row(r) for r in rows]


class DecisionRepository(Repository):
    TABLE_NAME = "agent_decisions"

    async def record(self, decision: Decision) -> None:
        await self._insert({
            "user_id": decision.user_id,
            "conversation_id": decision.conversation_id,
            "decision_type": decision.decision_type,
            "tool_name": decision.tool_name,
            "input_data": decision.input_data,
            "output_data": decision.output_data,
            "autonomy_level": decision.autonomy_level,
            "confidence": decision.confidence,
            "confidence_factors": decision.confidence_factors,
            "was_auto_executed": decision.was_auto_executed,
            "duration_ms": decision.duration_ms,
            "reasoning": decision.reasoning,
            "owner_feedback": decision.owner_feedback,
            "error_type": decision.error_type,
            "event_source": decision.event_source,
        }, returning="id")

    async def recent_feedback(self, user_id: str, tool_name: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Latest decisions for a tool that received owner feedback."""
        return await self._fetch_many(
            "user_id = $1 AND tool_name = $2 AND owner_feedback IS NOT NULL",
            (user_id, tool_name),
            order_by="created_at DESC", limit=limit,
        )
