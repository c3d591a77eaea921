"""Static tool catalog and lookup."""

from .catalog import TOOL_CATALOG
from .models import MAX_LEVEL, MIN_LEVEL, RiskLevel, ToolCategory, ToolMeta
from .registry import ToolRegistry

__all__ = [
    "TOOL_CATALOG",
    "MAX_LEVEL",
    "MIN_LEVEL",
    "RiskLevel",
    "ToolCategory",
    "ToolMeta",
    "ToolRegistry",
]
