"""
TrajectoryRecorder - persists the tool path of a turn and promotes the most
efficient path per intent to "golden".

Golden paths are fed back into the system prompt so the LLM prefers proven
tool sequences for requests it has seen before.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from ..constants import GOAL_MAX_CHARS
from ..models import Trajectory, TrajectoryStep
from .intent import (
    DEFAULT_EFFICIENCY_BUCKETS,
    DEFAULT_EFFICIENCY_FLOOR,
    compute_intent_hash,
    efficiency_score,
    intent_label,
)

logger = logging.getLogger(__name__)


@dataclass
class TrajectoryConfig:
    efficiency_buckets: Sequence[Tuple[int, float]] = DEFAULT_EFFICIENCY_BUCKETS
    efficiency_floor: float = DEFAULT_EFFICIENCY_FLOOR
    min_history: int = 2
    """Prior successful trajectories needed before a path can be promoted."""
    history_limit: int = 20
    faster_note_threshold: float = 20.0
    """Percent faster than average before the reply mentions it."""

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TrajectoryConfig":
        data = data or {}
        buckets = data.get("efficiency_buckets")
        return cls(
            efficiency_buckets=tuple((int(b[0]), float(b[1])) for b in buckets) if buckets else DEFAULT_EFFICIENCY_BUCKETS,
            efficiency_floor=float(data.get("efficiency_floor", DEFAULT_EFFICIENCY_FLOOR)),
            min_history=int(data.get("min_history", 2)),
            history_limit=int(data.get("history_limit", 20)),
            faster_note_threshold=float(data.get("faster_note_threshold", 20.0)),
        )


@dataclass
class TrajectoryRecord:
    """What recording a turn produced."""
    trajectory_id: Optional[str] = None
    intent_hash: Optional[str] = None
    promoted: bool = False
    efficiency_note: str = ""
    tool_names: List[str] = field(default_factory=list)


def _input_summary(args: Any) -> str:
    if isinstance(args, dict):
        return ", ".join(args.keys())
    return ""


def efficiency_note(
    duration_ms: int,
    tool_count: int,
    history: List[Trajectory],
    faster_threshold: float = 20.0,
) -> str:
    """Short remark for the reply when this turn beat the historical average."""
    if not history:
        return ""
    avg_duration = sum(t.total_duration_ms or 0 for t in history) / len(history)
    avg_tools = sum(t.tool_count for t in history) / len(history)
    faster = round((avg_duration - duration_ms) / avg_duration * 100) if avg_duration > 0 else 0
    if faster > faster_threshold:
        return f"\n\n(I completed this {faster}% faster than my average for similar requests.)"
    if avg_tools > 0 and tool_count < avg_tools:
        return (
            f"\n\n(I used {tool_count} tools this time compared with my usual "
            f"{round(avg_tools)}, so I'm getting more efficient.)"
        )
    return ""


class TrajectoryRecorder:

    def __init__(self, store, config: Optional[TrajectoryConfig] = None):
        self._store = store
        self.config = config or TrajectoryConfig()

    async def record(
        self,
        user_id: str,
        message: str,
        result,
        conversation_id: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> TrajectoryRecord:
        """Record the turn's trajectory. Turns without tool calls are ignored."""
        if not result.tool_calls:
            return TrajectoryRecord()

        tool_names = result.tools_used
        duration = result.duration_ms if duration_ms is None else duration_ms
        success = not result.had_tool_errors
        intent_hash = compute_intent_hash(message, tool_names)
        score = efficiency_score(result.turns, self.config.efficiency_buckets, self.config.efficiency_floor)

        trajectory = Trajectory(
            user_id=user_id,
            conversation_id=conversation_id,
            tool_sequence=[TrajectoryStep(tc.name, _input_summary(tc.args)) for tc in result.tool_calls],
            total_duration_ms=duration,
            success=success,
            efficiency_score=score,
            goal=message[:GOAL_MAX_CHARS],
            intent_hash=intent_hash,
            intent_label=intent_label(message),
        )

        # History is read before the insert so the current turn is not part of it
        history: List[Trajectory] = []
        if success:
            history = await self._store.trajectories.successful_for_intent(
                user_id, intent_hash, limit=self.config.history_limit,
            )

        trajectory_id = await self._store.trajectories.insert(trajectory)
        record = TrajectoryRecord(trajectory_id=trajectory_id, intent_hash=intent_hash, tool_names=tool_names)

        if len(tool_names) >= 2:
            await self._store.genome.record_co_occurrence(user_id, tool_names, success)

        if not success or len(history) < self.config.min_history:
            return record

        best_score = max(t.efficiency_score for t in history)
        avg_tools = sum(t.tool_count for t in history) / len(history)
        if score >= best_score and trajectory.tool_count <= avg_tools:
            await self._store.trajectories.set_golden(user_id, intent_hash, trajectory_id)
            record.promoted = True
            logger.info(f"[Trajectory] Promoted {trajectory_id} to golden for {intent_hash}")

        record.efficiency_note = efficiency_note(
            duration, trajectory.tool_count, history, self.config.faster_note_threshold,
        )
        return record
