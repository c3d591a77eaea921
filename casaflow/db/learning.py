"""
Repositories for what the agent learns over time: tool genome, measured
outcomes, owner rules and execution trajectories.
"""

import logging
from typing import Any, Dict, List, Optional

from ..gate.genome import apply_execution, update_co_occurrence
from ..models import Trajectory
from .repository import Repository

logger = logging.getLogger(__name__)


class GenomeRepository(Repository):
    TABLE_NAME = "tool_genome"

    async def get(self, user_id: str, tool_name: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one("user_id = $1 AND tool_name = $2", (user_id, tool_name))

    async def record_execution(
        self,
        user_id: str,
        tool_name: str,
        success: bool,
        duration_ms: float,
        params: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        existing = await self.get(user_id, tool_name)
        fields = apply_execution(existing, success, duration_ms, params, error)
        if existing:
            columns = list(fields.keys())
            assignments = ", ".join(f"{c} = ${i + 3}" for i, c in enumerate(columns))
            await self.db.execute(
                f"UPDATE tool_genome SET {assignments}, updated_at = NOW() "
                f"WHERE user_id = $1 AND tool_name = $2",
                user_id, tool_name, *fields.values(),
            )
        else:
            await self._insert({"user_id": user_id, "tool_name": tool_name, **fields}, returning="tool_name")

    async def record_co_occurrence(self, user_id: str, tool_names: List[str], success: bool) -> None:
        for tool_name in tool_names:
            genome = await self.get(user_id, tool_name)
            if not genome:
                continue
            co_occurrence = update_co_occurrence(genome.get("co_occurrence"), tool_name, tool_names, success)
            await self.db.execute(
                "UPDATE tool_genome SET co_occurrence = $3 WHERE user_id = $1 AND tool_name = $2",
                user_id, tool_name, co_occurrence,
            )


class OutcomeRepository(Repository):
    TABLE_NAME = "agent_outcomes"

    async def record(
        self,
        user_id: str,
        tool_name: str,
        outcome_type: str,
        duration_ms: int = 0,
        error: Optional[str] = None,
    ) -> None:
        await self._insert({
            "user_id": user_id,
            "tool_name": tool_name,
            "outcome_type": outcome_type,
            "duration_ms": duration_ms,
            "error": error[:500] if error else None,
        }, returning="id")

    async def recent(self, user_id: str, tool_name: str, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._fetch_many(
            "user_id = $1 AND tool_name = $2", (user_id, tool_name),
            order_by="created_at DESC", limit=limit,
        )


class RuleRepository(Repository):
    TABLE_NAME = "agent_rules"

    async def active_for_category(self, user_id: str, category: str, limit: int = 5) -> List[Dict[str, Any]]:
        return await self._fetch_many(
            "user_id = $1 AND active = true AND category = $2", (user_id, category),
            order_by="confidence DESC", limit=limit,
        )

    async def active_for_user(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return await self._fetch_many(
            "user_id = $1 AND active = true", (user_id,),
            order_by="confidence DESC", limit=limit,
        )

    async def upsert(
        self,
        user_id: str,
        rule_text: str,
        category: str,
        confidence: float = 0.7,
        source: str = "correction",
    ) -> None:
        await self.db.execute(
            "INSERT INTO agent_rules (user_id, rule_text, category, confidence, source, active) "
            "VALUES ($1, $2, $3, $4, $5, true) "
            "ON CONFLICT (user_id, rule_text) DO UPDATE SET "
            "category = EXCLUDED.category, confidence = EXCLUDED.confidence, "
            "source = EXCLUDED.source, active = true, updated_at = NOW()",
            user_id, rule_text, category, confidence, source,
        )


class TrajectoryRepository(Repository):
    TABLE_NAME = "agent_trajectories"

    async def insert(self, trajectory: Trajectory) -> str:
        row = await self._insert({
            "user_id": trajectory.user_id,
            "conversation_id": trajectory.conversation_id,
            "tool_sequence": [s.to_dict() for s in trajectory.tool_sequence],
            "total_duration_ms": trajectory.total_duration_ms,
            "success": trajectory.success,
            "efficiency_score": trajectory.efficiency_score,
            "goal": trajectory.goal,
            "intent_hash": trajectory.intent_hash,
            "intent_label": trajectory.intent_label,
            "tool_count": trajectory.tool_count,
            "is_golden": False,
        }, returning="id")
        return str(row["id"])

    async def golden_for_intent(self, user_id: str, intent_hash: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one(
            "user_id = $1 AND intent_hash = $2 AND is_golden = true", (user_id, intent_hash),
        )

    async def successful_for_intent(self, user_id: str, intent_hash: str, limit: int = 20) -> List[Trajectory]:
        rows = await self._fetch_many(
            "user_id = $1 AND intent_hash = $2 AND success = true", (user_id, intent_hash),
            order_by="efficiency_score DESC, created_at DESC", limit=limit,
        )
        return [Trajectory.from_row(r) for r in rows]

    async def set_golden(self, user_id: str, intent_hash: str, trajectory_id: str) -> None:
        """Make *trajectory_id* the only golden trajectory for the intent."""
        await self.db.execute(
            "UPDATE agent_trajectories SET is_golden = false "
            "WHERE user_id = $1 AND intent_hash = $2 AND is_golden = true AND id <> $3",
            user_id, intent_hash, trajectory_id,
        )
        await self.db.execute(
            "UPDATE agent_trajectories SET is_golden = true WHERE id = $1",
            trajectory_id,
        )

    async def golden_paths(self, user_id: str, limit: int = 5) -> List[Trajectory]:
        rows = await self._fetch_many(
            "user_id = $1 AND is_golden = true", (user_id,),
            order_by="efficiency_score DESC", limit=limit,
        )
        return [Trajectory.from_row(r) for r in rows]
