"""
LiteLLM-backed client.

One class covers every provider the engine is configured with (anthropic,
openai, azure, gemini, ollama); litellm does the provider translation and we
map its OpenAI-shaped result back onto ``LLMResponse``.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import litellm

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage

logger = logging.getLogger(__name__)

# API key fallbacks when the config leaves llm.api_key empty
_KEY_ENV_BY_PROVIDER: Dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

_PREFIXED_PROVIDERS = ("anthropic", "azure", "gemini", "ollama")

_STOP_REASONS = {
    "length": StopReason.MAX_TOKENS,
    "max_tokens": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE,
    "tool_use": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "content_filter": StopReason.CONTENT_FILTER,
    "stop_sequence": StopReason.STOP_SEQUENCE,
}


def litellm_model_name(provider: str, model: str) -> str:
    """``claude-sonnet`` + ``anthropic`` -> ``anthropic/claude-sonnet``."""
    provider = provider.lower()
    if "/" in model or provider not in _PREFIXED_PROVIDERS:
        return model
    return f"{provider}/{model}"


def parse_tool_arguments(raw: Any) -> Dict[str, Any]:
    """Tool arguments arrive as a JSON string; anything unusable becomes {}."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"[LLM] dropping unparseable tool arguments: {str(raw)[:200]}")
        return {}
    return value if isinstance(value, dict) else {}


class LiteLLMClient(BaseLLMClient):
    """
    Example:
        client = LiteLLMClient(LLMConfig(model="claude-sonnet-4-20250514"), provider_name="anthropic")
    """

    def __init__(self, config: LLMConfig, provider_name: str = "anthropic"):
        super().__init__(config)
        self.provider = provider_name.lower()
        self.model_name = litellm_model_name(self.provider, config.model)

        api_key = config.api_key
        if not api_key and self.provider in _KEY_ENV_BY_PROVIDER:
            api_key = os.environ.get(_KEY_ENV_BY_PROVIDER[self.provider])

        self._request_defaults: Dict[str, Any] = {"timeout": config.timeout}
        if api_key:
            self._request_defaults["api_key"] = api_key
        if config.base_url:
            self._request_defaults["api_base"] = config.base_url
        logger.info(f"[LLM] litellm client ready: {self.model_name}")

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> LLMResponse:
        request: Dict[str, Any] = {
            **self._request_defaults,
            "model": self.model_name,
            "messages": messages,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
        }
        if tools:
            request["tools"] = tools
            request["tool_choice"] = "auto"

        completion = await litellm.acompletion(**request)
        choice = completion.choices[0]

        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=parse_tool_arguments(tc.function.arguments))
            for tc in (choice.message.tool_calls or [])
        ]

        usage = None
        if completion.usage:
            usage = Usage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )
            if self.config.track_costs:
                try:
                    usage.cost = litellm.completion_cost(completion_response=completion)
                except Exception as e:
                    logger.debug(f"[LLM] no cost estimate for {self.model_name}: {e}")

        return LLMResponse(
            content=choice.message.content or "",
            tool_calls=calls or None,
            stop_reason=_STOP_REASONS.get(choice.finish_reason, StopReason.END_TURN),
            usage=usage,
            model=getattr(completion, "model", None) or self.config.model,
        )
