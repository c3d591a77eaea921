"""
casaflow Models - audit and approval records shared across the engine

PendingAction, Decision and Trajectory are written by the gate, the chat
service and the trajectory recorder, and read back by the HTTP layer, so
they live here rather than in any one of those packages.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def new_id() -> str:
    return str(uuid.uuid4())


def json_column(value: Any, default: Any = None) -> Any:
    """Decode a JSONB column that asyncpg handed back as text."""
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return default
    return value


def _pick(cls, row: Dict[str, Any]) -> Dict[str, Any]:
    names = cls.__dataclass_fields__.keys()
    return {k: v for k, v in row.items() if k in names}


# ===== Pending actions =====

PENDING_STATUS_PENDING = "pending"
PENDING_STATUS_APPROVED = "approved"
PENDING_STATUS_REJECTED = "rejected"


@dataclass
class PendingAction:
    """A tool call the gate deferred to the owner.

    ``autonomy_level`` is the level the tool needed, not the owner's level.
    Terminal once approved or rejected.
    """
    user_id: str
    action_type: str
    title: str
    tool_name: str
    tool_params: Dict[str, Any]
    autonomy_level: int
    description: str = ""
    recommendation: str = ""
    conversation_id: Optional[str] = None
    status: str = PENDING_STATUS_PENDING
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status != PENDING_STATUS_PENDING

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "PendingAction":
        data = _pick(cls, dict(row))
        data["tool_params"] = json_column(data.get("tool_params"), {})
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return cls(**data)


# ===== Decisions =====

@dataclass
class Decision:
    """Append-only audit record of one gate outcome or tool execution."""
    user_id: str
    decision_type: str
    tool_name: str
    input_data: Dict[str, Any] = field(default_factory=dict)
    output_data: Optional[Any] = None
    autonomy_level: int = 0
    confidence: Optional[float] = None
    confidence_factors: Optional[Dict[str, float]] = None
    was_auto_executed: bool = False
    duration_ms: int = 0
    reasoning: str = ""
    owner_feedback: Optional[str] = None
    error_type: Optional[str] = None
    event_source: Optional[str] = None
    conversation_id: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ===== Trajectories =====

@dataclass
class TrajectoryStep:
    name: str
    input_summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "input_summary": self.input_summary}


@dataclass
class Trajectory:
    """The ordered tool sequence of one successful or failed turn."""
    user_id: str
    tool_sequence: List[TrajectoryStep]
    total_duration_ms: int
    success: bool
    efficiency_score: float
    goal: str
    intent_hash: str
    intent_label: str
    conversation_id: Optional[str] = None
    is_golden: bool = False
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def tool_count(self) -> int:
        return len(self.tool_sequence)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["tool_count"] = self.tool_count
        return data

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Trajectory":
        data = _pick(cls, dict(row))
        steps = json_column(data.get("tool_sequence"), []) or []
        data["tool_sequence"] = [
            TrajectoryStep(name=s.get("name", ""), input_summary=s.get("input_summary", ""))
            for s in steps
        ]
        if data.get("id") is not None:
            data["id"] = str(data["id"])
        return cls(**data)
