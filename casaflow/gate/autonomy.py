"""
Autonomy presets, subscription tiers and per-category level resolution.

Levels are 0 (always ask) through 4 (silent execution). An owner picks a
preset; individual categories can be overridden with "L0".."L4" strings.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from ..registry.models import MAX_LEVEL, MIN_LEVEL, ToolCategory

DEFAULT_LEVEL = 2


class AutonomyPreset(str, Enum):
    CAUTIOUS = "cautious"
    BALANCED = "balanced"
    HANDS_OFF = "hands_off"


class SubscriptionTier(str, Enum):
    STARTER = "starter"
    PRO = "pro"
    HANDS_OFF = "hands_off"


_C = ToolCategory

# Total over every category for every preset
PRESET_DEFAULTS: Mapping[AutonomyPreset, Mapping[ToolCategory, int]] = {
    AutonomyPreset.CAUTIOUS: {
        _C.QUERY: 4, _C.ACTION: 1, _C.GENERATE: 2, _C.EXTERNAL: 1,
        _C.INTEGRATION: 1, _C.WORKFLOW: 0, _C.MEMORY: 4, _C.PLANNING: 3,
    },
    AutonomyPreset.BALANCED: {
        _C.QUERY: 4, _C.ACTION: 2, _C.GENERATE: 3, _C.EXTERNAL: 3,
        _C.INTEGRATION: 2, _C.WORKFLOW: 1, _C.MEMORY: 4, _C.PLANNING: 3,
    },
    AutonomyPreset.HANDS_OFF: {
        _C.QUERY: 4, _C.ACTION: 3, _C.GENERATE: 4, _C.EXTERNAL: 4,
        _C.INTEGRATION: 3, _C.WORKFLOW: 2, _C.MEMORY: 4, _C.PLANNING: 3,
    },
}

# Largest cost (AUD) an action may carry before it needs approval
FINANCIAL_THRESHOLDS: Mapping[AutonomyPreset, float] = {
    AutonomyPreset.CAUTIOUS: 0.0,
    AutonomyPreset.BALANCED: 500.0,
    AutonomyPreset.HANDS_OFF: 2000.0,
}

_BASE_CATEGORIES = frozenset({_C.QUERY, _C.MEMORY, _C.PLANNING, _C.ACTION, _C.GENERATE})

TIER_TOOL_ACCESS: Mapping[SubscriptionTier, FrozenSet[ToolCategory]] = {
    SubscriptionTier.STARTER: _BASE_CATEGORIES,
    SubscriptionTier.PRO: _BASE_CATEGORIES | {_C.WORKFLOW},
    SubscriptionTier.HANDS_OFF: _BASE_CATEGORIES | {_C.WORKFLOW, _C.EXTERNAL, _C.INTEGRATION},
}

_TIER_LABELS = {
    SubscriptionTier.PRO: "Pro",
    SubscriptionTier.HANDS_OFF: "Hands Off",
}


def parse_autonomy_level(value: Any, default: int = DEFAULT_LEVEL) -> int:
    """Convert "L3" / "3" / 3 to an int clamped to [0, 4]."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        level = value
    else:
        text = str(value or "").strip().upper()
        if text.startswith("L"):
            text = text[1:]
        try:
            level = int(text)
        except ValueError:
            return default
    return max(MIN_LEVEL, min(MAX_LEVEL, level))


def parse_preset(value: Optional[str]) -> AutonomyPreset:
    try:
        return AutonomyPreset(value or AutonomyPreset.BALANCED.value)
    except ValueError:
        return AutonomyPreset.BALANCED


def parse_tier(value: Optional[str]) -> SubscriptionTier:
    try:
        return SubscriptionTier(value or SubscriptionTier.STARTER.value)
    except ValueError:
        return SubscriptionTier.STARTER


def tier_allows(tier: SubscriptionTier, category: ToolCategory) -> bool:
    return category in TIER_TOOL_ACCESS.get(tier, _BASE_CATEGORIES)


def required_tier_label(category: ToolCategory) -> str:
    """Name of the cheapest plan that unlocks *category*."""
    if category in (_C.EXTERNAL, _C.INTEGRATION):
        return _TIER_LABELS[SubscriptionTier.HANDS_OFF]
    return _TIER_LABELS[SubscriptionTier.PRO]


@dataclass
class AutonomySettings:
    """An owner's autonomy preset plus per-category overrides."""

    user_id: str
    preset: AutonomyPreset = AutonomyPreset.BALANCED
    category_overrides: Dict[str, Any] = field(default_factory=dict)

    def level_for(self, category: ToolCategory) -> int:
        override = self.category_overrides.get(category.value)
        if override not in (None, ""):
            return parse_autonomy_level(override)
        return PRESET_DEFAULTS[self.preset].get(category, DEFAULT_LEVEL)

    @property
    def financial_threshold(self) -> float:
        return FINANCIAL_THRESHOLDS[self.preset]

    def summary(self) -> Dict[str, int]:
        return {c.value: self.level_for(c) for c in ToolCategory}

    @classmethod
    def from_row(cls, user_id: str, row: Optional[Dict[str, Any]]) -> "AutonomySettings":
        if not row:
            return cls(user_id=user_id)
        overrides = row.get("category_overrides") or {}
        if isinstance(overrides, str):
            try:
                overrides = json.loads(overrides)
            except json.JSONDecodeError:
                overrides = {}
        return cls(
            user_id=user_id,
            preset=parse_preset(row.get("preset")),
            category_overrides=dict(overrides),
        )
