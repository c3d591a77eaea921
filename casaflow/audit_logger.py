"""
Structured audit logging for gate decisions and loop progress.

Produces JSON log entries via Python's standard logging module under the
``casaflow.audit`` logger name. Each entry includes a timestamp, event_type,
the owner's user_id, and event-specific fields. These lines complement the
agent_decisions table: they are written synchronously and survive a store
outage.

Usage::

    audit = AuditLogger()
    audit.log_gate_decision(
        tool_name="create_work_order",
        outcome="deferred",
        required_level=3,
        granted_level=2,
        reason="autonomy_level",
        user_id="owner-1",
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_audit_logger = logging.getLogger("casaflow.audit")


class AuditLogger:
    """Structured audit logger for key engine decisions."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self._default_user_id = user_id

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def _uid(self, user_id: Optional[str] = None) -> str:
        return user_id or self._default_user_id or ""

    def log_gate_decision(
        self,
        tool_name: str,
        outcome: str,
        required_level: int,
        granted_level: int,
        reason: str,
        user_id: Optional[str] = None,
        event_source: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> None:
        """Log whether the gate executed, deferred or blocked a tool call."""
        fields: Dict[str, Any] = {
            "user_id": self._uid(user_id),
            "tool_name": tool_name,
            "outcome": outcome,
            "required_level": required_level,
            "granted_level": granted_level,
            "reason": reason,
        }
        if event_source:
            fields["event_source"] = event_source
        if confidence is not None:
            fields["confidence"] = confidence
        self._emit("gate_decision", fields)

    def log_tool_execution(
        self,
        tool_name: str,
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        fields: Dict[str, Any] = {
            "user_id": self._uid(user_id),
            "tool_name": tool_name,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_loop_turn(
        self,
        turn: int,
        tool_calls: List[str],
        final_answer: bool,
        user_id: Optional[str] = None,
    ) -> None:
        """Log one iteration of the agentic loop."""
        self._emit("loop_turn", {
            "user_id": self._uid(user_id),
            "turn": turn,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
            "final_answer": final_answer,
        })

    def log_run_summary(self, mode: str, summary: Dict[str, Any]) -> None:
        """Log the outcome of an orchestrator run."""
        self._emit("run_summary", {"mode": mode, **summary})
