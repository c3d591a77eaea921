"""Workflow records: an ordered list of steps advanced over time."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import SOURCE_WORKFLOW_PREFIX
from ..models import json_column


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


STEP_PENDING = "pending"
STEP_COMPLETED = "completed"


@dataclass
class WorkflowStep:
    name: str
    status: str = STEP_PENDING
    tool_name: Optional[str] = None
    tool_params: Dict[str, Any] = field(default_factory=dict)
    description: str = ""
    result: Optional[str] = None
    completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "status": self.status}
        if self.tool_name:
            data["tool_name"] = self.tool_name
        if self.tool_params:
            data["tool_params"] = self.tool_params
        if self.description:
            data["description"] = self.description
        if self.result is not None:
            data["result"] = self.result
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowStep":
        return cls(
            name=data.get("name", ""),
            status=data.get("status", STEP_PENDING),
            tool_name=data.get("tool_name") or data.get("tool"),
            tool_params=data.get("tool_params") or data.get("params") or {},
            description=data.get("description", ""),
            result=data.get("result"),
            completed_at=data.get("completed_at"),
        )


@dataclass
class Workflow:
    """A multi-step process such as a lease renewal.

    ``current_step`` is the index of the next step to run and only ever
    increases; the workflow is completed when it reaches ``total_steps``.
    """
    user_id: str
    workflow_type: str
    steps: List[WorkflowStep]
    current_step: int = 0
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    property_id: Optional[str] = None
    tenancy_id: Optional[str] = None
    next_action_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def current(self) -> Optional[WorkflowStep]:
        if 0 <= self.current_step < len(self.steps):
            return self.steps[self.current_step]
        return None

    @property
    def source_tag(self) -> str:
        return f"{SOURCE_WORKFLOW_PREFIX}{self.workflow_type}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "workflow_type": self.workflow_type,
            "steps": [s.to_dict() for s in self.steps],
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "status": self.status.value,
            "property_id": self.property_id,
            "tenancy_id": self.tenancy_id,
            "next_action_at": self.next_action_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Workflow":
        row = dict(row)
        steps = [WorkflowStep.from_dict(s) for s in json_column(row.get("steps"), []) or []]
        try:
            status = WorkflowStatus(row.get("status") or WorkflowStatus.ACTIVE.value)
        except ValueError:
            status = WorkflowStatus.FAILED
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row["user_id"]),
            workflow_type=row["workflow_type"],
            steps=steps,
            current_step=int(row.get("current_step") or 0),
            status=status,
            property_id=str(row["property_id"]) if row.get("property_id") else None,
            tenancy_id=str(row["tenancy_id"]) if row.get("tenancy_id") else None,
            next_action_at=row.get("next_action_at"),
            metadata=json_column(row.get("metadata"), {}) or {},
            created_at=row.get("created_at"),
        )
