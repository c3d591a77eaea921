"""
ToolRegistry - read-only lookup over the static tool catalog.

The registry never raises for an unknown name: the LLM may hallucinate tool
names, so callers get ``None`` and turn that into a failed tool result.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Set

from .catalog import TOOL_CATALOG
from .models import ToolCategory, ToolMeta

logger = logging.getLogger(__name__)

# Categories offered with every contextual tool set
_ALWAYS_OFFERED = (ToolCategory.QUERY, ToolCategory.MEMORY, ToolCategory.PLANNING)

# Domain -> (message keywords, tool-name fragments)
_DOMAIN_KEYWORDS: Dict[str, tuple] = {
    "maintenance": (
        ("maintenance", "repair", "fix", "leak", "broken", "plumb", "electric", "trade",
         "quote", "work order", "hot water", "roof", "emergency"),
        ("maintenance", "work_order", "quote", "trade", "triage", "estimate_cost", "request_quote",
         "service_provider", "damage"),
    ),
    "rent": (
        ("rent", "payment", "paid", "arrears", "overdue", "owing", "receipt", "autopay", "late"),
        ("rent", "payment", "arrears", "receipt", "autopay", "stripe", "breach", "refund"),
    ),
    "lease": (
        ("lease", "tenancy", "renew", "bond", "notice", "terminate", "vacate", "expir", "increase"),
        ("lease", "tenancy", "bond", "notice", "rent_increase", "rent_amount", "docusign", "analyze_rent",
         "suggest_rent"),
    ),
    "listing": (
        ("listing", "vacant", "advertis", "applica", "applicant", "find tenant", "screen", "portal"),
        ("listing", "application", "syndicate", "credit_check", "tica", "find_tenant", "onboard", "invite"),
    ),
    "inspection": (
        ("inspect", "condition", "entry report", "exit report"),
        ("inspection", "damage"),
    ),
    "compliance": (
        ("compliance", "smoke", "alarm", "gas", "pool", "safety", "regulat", "law", "legal"),
        ("compliance", "regulatory", "web_search"),
    ),
    "messaging": (
        ("message", "email", "sms", "text", "tell", "contact", "notify", "remind"),
        ("message", "conversation", "sms", "email", "push", "reminder", "draft"),
    ),
    "finance": (
        ("financ", "tax", "expense", "income", "cash flow", "report", "yield", "portfolio"),
        ("financial", "tax", "expense", "transaction", "cash_flow", "portfolio", "property_summary"),
    ),
    "market": (
        ("market", "median", "comparable", "suburb"),
        ("market", "analyze_rent", "suggest_rent", "web_search"),
    ),
}


class ToolRegistry:
    """Immutable tool lookup table."""

    def __init__(self, tools: Iterable[ToolMeta] = TOOL_CATALOG):
        self._tools: Dict[str, ToolMeta] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool in catalog: {tool.name}")
            self._tools[tool.name] = tool

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def lookup(self, name: str) -> Optional[ToolMeta]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def by_category(self, category: ToolCategory) -> List[ToolMeta]:
        return [t for t in self._tools.values() if t.category == category]

    def schemas(
        self,
        names: Optional[Iterable[str]] = None,
        allowed_categories: Optional[Set[ToolCategory]] = None,
    ) -> List[dict]:
        """Tool schemas for the LLM, optionally restricted by name and category."""
        if names is None:
            tools = list(self._tools.values())
        else:
            tools = [self._tools[n] for n in names if n in self._tools]
        if allowed_categories is not None:
            tools = [t for t in tools if t.category in allowed_categories]
        return [t.to_schema() for t in tools]

    def contextual_tools(
        self,
        message: str,
        allowed_categories: Optional[Set[ToolCategory]] = None,
    ) -> List[dict]:
        """Narrow the catalog to the domains *message* talks about.

        Query, memory and planning tools are always offered. When no domain
        keyword matches, the full catalog is returned.
        """
        text = (message or "").lower()
        fragments: List[str] = []
        for domain, (keywords, name_fragments) in _DOMAIN_KEYWORDS.items():
            if any(re.search(re.escape(k), text) for k in keywords):
                fragments.extend(name_fragments)

        if not fragments:
            return self.schemas(allowed_categories=allowed_categories)

        selected = [
            name for name, tool in self._tools.items()
            if tool.category in _ALWAYS_OFFERED or any(f in name for f in fragments)
        ]
        logger.debug(f"[Registry] contextual tools: {len(selected)}/{len(self._tools)}")
        return self.schemas(selected, allowed_categories=allowed_categories)
