"""Multi-step workflows advanced over time."""

from .models import STEP_COMPLETED, STEP_PENDING, Workflow, WorkflowStatus, WorkflowStep
from .templates import WORKFLOW_TEMPLATES, WORKFLOW_TYPES, build_steps

__all__ = [
    "STEP_COMPLETED",
    "STEP_PENDING",
    "Workflow",
    "WorkflowStatus",
    "WorkflowStep",
    "WORKFLOW_TEMPLATES",
    "WORKFLOW_TYPES",
    "build_steps",
]
