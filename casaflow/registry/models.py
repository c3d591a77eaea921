"""Tool registry types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ToolCategory(str, Enum):
    """Governance category of a tool. Autonomy is granted per category."""
    QUERY = "query"
    ACTION = "action"
    GENERATE = "generate"
    EXTERNAL = "external"
    INTEGRATION = "integration"
    WORKFLOW = "workflow"
    MEMORY = "memory"
    PLANNING = "planning"


class RiskLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Autonomy levels
#   0 = Inform      (always needs owner approval)
#   1 = Suggest     (proposes action, needs confirmation)
#   2 = Draft       (prepares action for review)
#   3 = Execute     (does it, reports after)
#   4 = Autonomous  (silent execution)
MIN_LEVEL = 0
MAX_LEVEL = 4


@dataclass(frozen=True)
class ToolMeta:
    """Registry entry: governance metadata plus the schema sent to the LLM."""

    name: str
    category: ToolCategory
    required_level: int
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    risk_level: RiskLevel = RiskLevel.NONE
    reversible: bool = False
    compensation_tool: Optional[str] = None

    def __post_init__(self):
        if not MIN_LEVEL <= self.required_level <= MAX_LEVEL:
            raise ValueError(
                f"Tool '{self.name}' required_level {self.required_level} "
                f"outside [{MIN_LEVEL}, {MAX_LEVEL}]"
            )

    def to_schema(self) -> Dict[str, Any]:
        """OpenAI function-tool format (what litellm expects)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description or self.name,
                "parameters": self.input_schema,
            },
        }
