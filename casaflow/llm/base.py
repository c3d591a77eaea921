"""
Provider-neutral LLM types.

The engine talks to models only through ``BaseLLMClient.chat_completion``
with OpenAI-format messages and function-tool schemas; a client returns an
``LLMResponse`` whose tool calls already have parsed argument dicts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"
    CONTENT_FILTER = "content_filter"


@dataclass
class LLMConfig:
    """Per-client model settings.

    ``max_tokens`` is only the default; the gateway passes an explicit
    limit for chat (4096) and orchestrator (2048) completions.
    """
    model: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 2048
    timeout: int = 60
    track_costs: bool = False


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: Optional[float] = None


@dataclass
class LLMResponse:
    content: str
    tool_calls: Optional[List[ToolCall]] = None
    stop_reason: StopReason = StopReason.END_TURN
    usage: Optional[Usage] = None
    model: Optional[str] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class BaseLLMClient(ABC):
    """Subclasses implement ``_call_api``; callers use ``chat_completion``."""

    provider: str = "unknown"

    def __init__(self, config: LLMConfig):
        self.config = config

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Provider-specific completion call."""

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> LLMResponse:
        """
        Args:
            messages: system prompt first, then the transcript
            tools: function-tool schemas; an empty list sends none
            config: per-call overrides such as ``max_tokens``
        """
        return await self._call_api(messages, tools or None, **(config or {}))

    async def close(self) -> None:
        return None
