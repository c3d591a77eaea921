"""
Pure gating rules: cost extraction, emergency override, confidence escalation
and tool-error classification.
"""

import re
from typing import Any, Iterable, Optional

from ..registry.models import MAX_LEVEL

# Parameter names that carry a monetary amount
COST_FIELDS = frozenset({
    "amount", "cost", "price", "quote", "quote_amount", "estimated_cost",
    "total", "total_cost", "fee", "budget", "max_cost", "approved_amount",
    "rent_amount", "new_rent",
})

# Notification/compliance tools allowed to bypass level checks for urgent sources
EMERGENCY_OVERRIDE_TOOLS = frozenset({
    "send_rent_reminder",
    "send_receipt",
    "send_push_expo",
    "send_sms_twilio",
    "send_in_app_message",
    "check_regulatory_requirements",
})

_URGENT_SOURCE_MARKERS = ("emergency", "compliance_overdue", "payment_failed", "arrears")

CONFIDENCE_THRESHOLD = 0.5

_NUMERIC_STRING = re.compile(r"^-?\d+(\.\d+)?$")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "").replace("AUD", "").strip()
        if _NUMERIC_STRING.match(cleaned):
            return float(cleaned)
    return None


def _walk_costs(value: Any) -> Iterable[float]:
    if isinstance(value, dict):
        for key, item in value.items():
            if key in COST_FIELDS:
                number = _as_number(item)
                if number is not None:
                    yield number
            if isinstance(item, (dict, list)):
                yield from _walk_costs(item)
    elif isinstance(value, list):
        for item in value:
            yield from _walk_costs(item)


def extract_cost(params: Any) -> Optional[float]:
    """Largest positive monetary value anywhere in *params*, or None."""
    positives = [v for v in _walk_costs(params) if v > 0]
    return max(positives) if positives else None


def is_urgent_source(event_source: Optional[str]) -> bool:
    if not event_source:
        return False
    source = event_source.lower()
    return any(marker in source for marker in _URGENT_SOURCE_MARKERS)


def emergency_override_applies(tool_name: str, event_source: Optional[str]) -> bool:
    return tool_name in EMERGENCY_OVERRIDE_TOOLS and is_urgent_source(event_source)


def escalate_for_confidence(required_level: int, composite: float) -> int:
    """Required level after confidence escalation (+1, capped at 4)."""
    if composite < CONFIDENCE_THRESHOLD:
        return min(required_level + 1, MAX_LEVEL)
    return required_level


# ── Tool error classification ──

ERROR_VALIDATION = "validation"
ERROR_NOT_FOUND = "not_found"
ERROR_EXTERNAL_DEPENDENCY = "external_dependency"
ERROR_UNKNOWN = "unknown"

_VALIDATION_PATTERNS = (
    "unknown tool", "not yet implemented", "missing required", "is required",
    "invalid parameter", "invalid input", "invalid date", "constraint",
    "duplicate", "already exists", "violates", "out of range", "must be",
)
_VALIDATION_REGEX = re.compile(r"expected .* got")
_NOT_FOUND_PATTERNS = (
    "not found", "no data", "does not exist", "no rows", "permission denied",
    "access denied", "no matching",
)
_EXTERNAL_PATTERNS = (
    "timeout", "timed out", "connection", "network", "econnrefused",
    "service unavailable", "bad gateway", "rate limit", "too many requests",
    "500", "502", "503", "504",
)


def classify_tool_error(error: Optional[str]) -> str:
    """Bucket a tool error message for the learning service."""
    text = (error or "").lower()
    if not text:
        return ERROR_UNKNOWN
    if any(p in text for p in _VALIDATION_PATTERNS) or _VALIDATION_REGEX.search(text):
        return ERROR_VALIDATION
    if any(p in text for p in _NOT_FOUND_PATTERNS):
        return ERROR_NOT_FOUND
    if any(p in text for p in _EXTERNAL_PATTERNS):
        return ERROR_EXTERNAL_DEPENDENCY
    return ERROR_UNKNOWN
