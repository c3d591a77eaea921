"""Trajectory recording and golden-path promotion."""

from .intent import compute_intent_hash, efficiency_score, intent_label
from .recorder import TrajectoryConfig, TrajectoryRecord, TrajectoryRecorder, efficiency_note

__all__ = [
    "compute_intent_hash",
    "efficiency_score",
    "intent_label",
    "efficiency_note",
    "TrajectoryConfig",
    "TrajectoryRecord",
    "TrajectoryRecorder",
]
