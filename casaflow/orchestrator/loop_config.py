"""Agentic loop configuration and result dataclasses.

Centralizes the tunable parameters of the tool-use loop, along with
structured types for tracking tool calls, token usage, and loop results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import NOTIFICATION_TOOLS


@dataclass
class LoopConfig:
    """All agentic loop configuration centralized in one place."""

    # Loop control
    max_iterations: int = 10

    # Tool execution
    tool_concurrency: int = 3
    """Max tool calls dispatched concurrently within one round."""
    max_tool_result_chars: int = 20_000
    """Tool result text sent back to the LLM is cut at this length."""

    # Context management
    context_token_budget: int = 120_000
    """Transcript budget before subtracting the system prompt."""
    keep_head_messages: int = 2
    keep_tail_messages: int = 10

    # LLM calls
    max_tokens: int = 2048
    """Completion budget per LLM call."""


@dataclass
class TokenUsage:
    """Accumulated token usage counters."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, int]:
        return {"input": self.input_tokens, "output": self.output_tokens, "total": self.total}


@dataclass
class ToolCallRecord:
    """Per-call telemetry for a single tool invocation."""

    name: str
    args: Dict[str, Any]
    outcome: str
    """GateOutcome value: executed / deferred / tier_blocked / unknown_tool."""
    success: bool = True
    duration_ms: int = 0
    turn: int = 0
    error: Optional[str] = None
    pending_action_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "args": self.args,
            "outcome": self.outcome,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "turn": self.turn,
            "error": self.error,
            "pending_action_id": self.pending_action_id,
        }


@dataclass
class LoopResult:
    """Structured result returned by the agentic loop."""

    response: str
    turns: int = 0
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    duration_ms: int = 0
    model: Optional[str] = None
    exhausted: bool = False
    pending_action_ids: List[str] = field(default_factory=list)

    @property
    def tools_used(self) -> List[str]:
        return [tc.name for tc in self.tool_calls]

    @property
    def actions_taken(self) -> int:
        """Tool calls that actually executed and succeeded."""
        return sum(1 for tc in self.tool_calls if tc.outcome == "executed" and tc.success)

    @property
    def had_tool_errors(self) -> bool:
        """Failed executions and calls to tools that do not exist.

        Deferred and tier-blocked calls carry a message in ``error`` but are
        not failures.
        """
        return any(
            tc.outcome == "unknown_tool" or (tc.outcome == "executed" and not tc.success)
            for tc in self.tool_calls
        )

    @property
    def notifications_sent(self) -> int:
        return sum(
            1 for tc in self.tool_calls
            if tc.outcome == "executed" and tc.success and tc.name in NOTIFICATION_TOOLS
        )
