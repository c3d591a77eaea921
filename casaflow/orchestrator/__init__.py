"""
casaflow Orchestrator Module - the agentic loop, prompt assembly and the
directive runner shared by chat, events, workflows and batch reviews.

ChatService and OrchestratorService live in ``.chat`` and ``.service`` and
are imported from there.
"""

from .context_manager import ContextManager, estimate_tokens
from .loop import AgenticLoop
from .loop_config import LoopConfig, LoopResult, TokenUsage, ToolCallRecord
from .prompts import build_system_prompt, render_orchestrator_context
from .runner import DirectiveRunner, OwnerContext, load_owner_context

__all__ = [
    "ContextManager",
    "estimate_tokens",
    "AgenticLoop",
    "LoopConfig",
    "LoopResult",
    "TokenUsage",
    "ToolCallRecord",
    "build_system_prompt",
    "render_orchestrator_context",
    "DirectiveRunner",
    "OwnerContext",
    "load_owner_context",
]
