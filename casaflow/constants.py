"""
Shared constants for the casaflow engine.

Centralizes values that are needed by the gate, the loop and the
batch/event entry points to avoid circular imports and duplication.
"""

from typing import FrozenSet, Tuple

# ── Decision types (agent_decisions.decision_type) ──
DECISION_TOOL_EXECUTION = "tool_execution"
DECISION_AUTONOMY_GATE = "autonomy_gate"
DECISION_CONFIDENCE_GATE = "confidence_gate"
DECISION_TOOL_EXECUTION_APPROVED = "tool_execution_approved"
DECISION_ACTION_REJECTED = "action_rejected"

# ── Event source tags ──
# Used for emergency-override matching and for the agent_events audit rows.
SOURCE_CHAT = "chat"
SOURCE_TRIGGER_PREFIX = "trigger_"
SOURCE_HEARTBEAT_PREFIX = "heartbeat_"
SOURCE_WORKFLOW_PREFIX = "workflow_"

# ── Tools that deliver a message to a person ──
NOTIFICATION_TOOLS: FrozenSet[str] = frozenset({
    "send_message",
    "send_in_app_message",
    "send_rent_reminder",
    "send_push_expo",
    "send_email_sendgrid",
    "send_sms_twilio",
    "send_receipt",
})

# ── Truncation limits for persisted text ──
EVENT_ERROR_MAX_CHARS = 500
STEP_RESULT_MAX_CHARS = 500
WORKFLOW_ERROR_MAX_CHARS = 200
REASONING_MAX_CHARS = 2000
GOAL_MAX_CHARS = 200
PENDING_TITLE_PARAMS_MAX_CHARS = 100

# ── Fallback replies when the loop runs out of iterations ──
CHAT_EXHAUSTED_RESPONSE = (
    "I apologise, but I ran into some complexity processing your request. "
    "Could you try rephrasing or breaking it into smaller steps?"
)
ORCHESTRATOR_EXHAUSTED_RESPONSE = (
    "Orchestrator reached maximum tool iterations. "
    "Some actions may need follow-up."
)

# ── Run modes for the orchestrator entry point ──
MODE_INSTANT = "instant"
MODE_DAILY = "daily"
MODE_WEEKLY = "weekly"
MODE_MONTHLY = "monthly"
RUN_MODES: Tuple[str, ...] = (MODE_INSTANT, MODE_DAILY, MODE_WEEKLY, MODE_MONTHLY)
