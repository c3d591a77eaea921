"""Autonomy gating, confidence scoring and tool genome statistics."""

from .autonomy import (
    FINANCIAL_THRESHOLDS,
    PRESET_DEFAULTS,
    TIER_TOOL_ACCESS,
    AutonomyPreset,
    AutonomySettings,
    SubscriptionTier,
    parse_autonomy_level,
    parse_preset,
    parse_tier,
    tier_allows,
)
from .confidence import ConfidenceFactors, ConfidenceInputs, ConfidenceScorer, compute_confidence
from .gate import AutonomyGate, GateContext, GateOutcome, GateResult
from .genome import GENOME_EMA_ALPHA, apply_execution, update_co_occurrence
from .policy import (
    COST_FIELDS,
    EMERGENCY_OVERRIDE_TOOLS,
    classify_tool_error,
    escalate_for_confidence,
    extract_cost,
    is_urgent_source,
)

__all__ = [
    "FINANCIAL_THRESHOLDS",
    "PRESET_DEFAULTS",
    "TIER_TOOL_ACCESS",
    "AutonomyPreset",
    "AutonomySettings",
    "SubscriptionTier",
    "parse_autonomy_level",
    "parse_preset",
    "parse_tier",
    "tier_allows",
    "ConfidenceFactors",
    "ConfidenceInputs",
    "ConfidenceScorer",
    "compute_confidence",
    "AutonomyGate",
    "GateContext",
    "GateOutcome",
    "GateResult",
    "GENOME_EMA_ALPHA",
    "apply_execution",
    "update_co_occurrence",
    "COST_FIELDS",
    "EMERGENCY_OVERRIDE_TOOLS",
    "classify_tool_error",
    "escalate_for_confidence",
    "extract_cost",
    "is_urgent_source",
]
