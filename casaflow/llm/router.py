"""
Model routing - decide which model tier serves a request.

Cheap, well-understood work (short read-only chat questions, routine events,
daily sweeps, workflow steps) goes to the fast model; anything that may
mutate state or needs portfolio-level reasoning goes to the strong one.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List

from ..constants import MODE_MONTHLY, MODE_WEEKLY
from .gateway import ModelTier

# Messages mentioning any of these need the strong model
_ACTION_PATTERN = re.compile(
    r"create|update|send|schedule|generate|find.*trade|find.*plumb|find.*electric|"
    r"find.*service|search|web|online|remind|pay|invoice|add.*trade|add.*network",
    re.IGNORECASE,
)

SIMPLE_QUERY_MAX_MESSAGES = 2
SIMPLE_QUERY_MAX_CHARS = 200

COMPLEX_EVENT_TYPES = frozenset({
    "maintenance_submitted_emergency",
    "lease_expiring_soon",
    "arrears_escalation",
    "inspection_failed",
    "compliance_overdue",
    "tenancy_terminated",
    "payment_failed_multiple",
    "bond_dispute",
})


@dataclass
class RoutingDecision:
    tier: ModelTier
    reason: str


class ModelRouter:
    """Stateless tier selection for each entry point."""

    def for_chat(self, message: str, history: List[Dict[str, Any]]) -> RoutingDecision:
        message = message or ""
        if (
            len(history) <= SIMPLE_QUERY_MAX_MESSAGES
            and len(message) < SIMPLE_QUERY_MAX_CHARS
            and not _ACTION_PATTERN.search(message)
        ):
            return RoutingDecision(ModelTier.FAST, "simple_query")
        return RoutingDecision(ModelTier.STRONG, "complex_chat")

    def for_event(self, event_type: str) -> RoutingDecision:
        if event_type in COMPLEX_EVENT_TYPES:
            return RoutingDecision(ModelTier.STRONG, f"complex_event:{event_type}")
        return RoutingDecision(ModelTier.FAST, f"routine_event:{event_type}")

    def for_batch(self, mode: str) -> RoutingDecision:
        if mode in (MODE_WEEKLY, MODE_MONTHLY):
            return RoutingDecision(ModelTier.STRONG, f"{mode}_review")
        return RoutingDecision(ModelTier.FAST, f"{mode}_review")

    def for_workflow(self, workflow_type: str) -> RoutingDecision:
        return RoutingDecision(ModelTier.FAST, f"workflow:{workflow_type}")
