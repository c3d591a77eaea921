"""
Confidence scoring.

A six-factor weighted estimate of how likely an autonomous tool call is to be
what the owner wants. Low scores make the gate ask for one more autonomy
level than the tool normally needs.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..registry.models import ToolCategory

logger = logging.getLogger(__name__)

SOURCE_QUALITY_MAP: Dict[ToolCategory, float] = {
    ToolCategory.QUERY: 0.95,
    ToolCategory.MEMORY: 0.90,
    ToolCategory.GENERATE: 0.75,
    ToolCategory.ACTION: 0.85,
    ToolCategory.EXTERNAL: 0.65,
    ToolCategory.INTEGRATION: 0.60,
    ToolCategory.WORKFLOW: 0.70,
    ToolCategory.PLANNING: 0.80,
}
DEFAULT_SOURCE_QUALITY = 0.7

WEIGHTS: Dict[str, float] = {
    "historical_accuracy": 0.30,
    "source_quality": 0.10,
    "precedent_alignment": 0.20,
    "rule_alignment": 0.15,
    "golden_alignment": 0.10,
    "outcome_track": 0.15,
}

# Minimum sample sizes before history replaces the neutral prior
MIN_GENOME_EXECUTIONS = 3
MIN_PRECEDENTS = 2
MIN_OUTCOMES = 3

PRECEDENT_LIMIT = 5
RULE_LIMIT = 5
OUTCOME_LIMIT = 20


@dataclass
class ConfidenceInputs:
    """Raw history used to score one tool call."""
    category: ToolCategory
    tool_name: str
    genome: Optional[Dict[str, Any]] = None
    precedents: List[Dict[str, Any]] = field(default_factory=list)
    rules: List[Dict[str, Any]] = field(default_factory=list)
    golden_tools: Sequence[str] = ()
    outcomes: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ConfidenceFactors:
    historical_accuracy: float
    source_quality: float
    precedent_alignment: float
    rule_alignment: float
    golden_alignment: float
    outcome_track: float
    composite: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_confidence(inputs: ConfidenceInputs) -> ConfidenceFactors:
    """Pure scoring function over already-fetched history."""
    historical = 0.8
    genome = inputs.genome
    if genome and (genome.get("total_executions") or 0) >= MIN_GENOME_EXECUTIONS:
        historical = float(genome.get("success_rate_ema") or 0.0)

    source = SOURCE_QUALITY_MAP.get(inputs.category, DEFAULT_SOURCE_QUALITY)

    precedent = 0.7
    if len(inputs.precedents) >= MIN_PRECEDENTS:
        approved = sum(1 for d in inputs.precedents if d.get("owner_feedback") == "approved")
        precedent = approved / len(inputs.precedents)

    rule = 0.8
    if inputs.rules:
        rule = sum(float(r.get("confidence") or 0.0) for r in inputs.rules) / len(inputs.rules)

    golden = 1.0 if inputs.tool_name in inputs.golden_tools else 0.5

    outcome = 0.7
    if len(inputs.outcomes) >= MIN_OUTCOMES:
        successes = sum(1 for o in inputs.outcomes if o.get("outcome_type") == "success")
        outcome = successes / len(inputs.outcomes)

    factors = {
        "historical_accuracy": historical,
        "source_quality": source,
        "precedent_alignment": precedent,
        "rule_alignment": rule,
        "golden_alignment": golden,
        "outcome_track": outcome,
    }
    composite = sum(factors[name] * weight for name, weight in WEIGHTS.items())
    return ConfidenceFactors(
        **{name: round(value, 3) for name, value in factors.items()},
        composite=round(composite, 3),
    )


class ConfidenceScorer:
    """Fetches the history for a tool call from the store and scores it."""

    def __init__(self, store):
        self._store = store

    async def score(
        self,
        user_id: str,
        tool_name: str,
        category: ToolCategory,
        intent_hash: Optional[str] = None,
    ) -> ConfidenceFactors:
        store = self._store

        async def _golden_tools() -> List[str]:
            if not intent_hash:
                return []
            golden = await store.trajectories.golden_for_intent(user_id, intent_hash)
            if not golden:
                return []
            return [step.get("name") for step in golden.get("tool_sequence") or []]

        genome, precedents, rules, golden_tools, outcomes = await asyncio.gather(
            store.genome.get(user_id, tool_name),
            store.decisions.recent_feedback(user_id, tool_name, limit=PRECEDENT_LIMIT),
            store.rules.active_for_category(user_id, category.value, limit=RULE_LIMIT),
            _golden_tools(),
            store.outcomes.recent(user_id, tool_name, limit=OUTCOME_LIMIT),
        )
        factors = compute_confidence(ConfidenceInputs(
            category=category,
            tool_name=tool_name,
            genome=genome,
            precedents=precedents,
            rules=rules,
            golden_tools=golden_tools,
            outcomes=outcomes,
        ))
        logger.debug(f"[Gate] confidence {tool_name}: {factors.composite}")
        return factors
