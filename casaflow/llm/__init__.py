"""
LLM access: the litellm client, tier routing and the retrying gateway
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage
from .gateway import LLMGateway, ModelTier, is_retryable
from .litellm_client import LiteLLMClient, litellm_model_name, parse_tool_arguments
from .router import COMPLEX_EVENT_TYPES, ModelRouter, RoutingDecision

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "ToolCall",
    "Usage",
    "LLMGateway",
    "ModelTier",
    "is_retryable",
    "LiteLLMClient",
    "litellm_model_name",
    "parse_tool_arguments",
    "COMPLEX_EVENT_TYPES",
    "ModelRouter",
    "RoutingDecision",
]
