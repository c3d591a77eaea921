"""
LLM Gateway - model-tier aware wrapper with bounded retry.

Every LLM call made by the engine goes through ``LLMGateway.complete``. It
picks the client for the requested tier, prepends the system prompt, and
retries transient provider failures (429, 529 and 5xx) with exponential
backoff. Anything else, or exhaustion of the retries, raises
``UpstreamError``.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import UpstreamError
from .base import BaseLLMClient, LLMResponse

logger = logging.getLogger(__name__)


class ModelTier(str, Enum):
    FAST = "fast"
    STRONG = "strong"


_RETRYABLE_STATUS = frozenset({429, 529})
_OVERLOAD_STATUS = frozenset({429, 529})
_RETRYABLE_PATTERNS = (
    "rate limit", "ratelimit", "too many requests", "overloaded",
    "429", "529", "internal server error", "service unavailable", "bad gateway",
    "502", "503", "504",
)
_AUTH_PATTERNS = ("401", "403", "invalid api key", "unauthorized", "authentication")


def _extract_status_code(error: Exception) -> Optional[int]:
    """Try to pull an HTTP status code out of the exception."""
    for attr in ("status_code", "code", "status"):
        val = getattr(error, attr, None)
        if isinstance(val, int):
            return val
    return None


def is_retryable(error: Exception) -> bool:
    status = _extract_status_code(error)
    if status is not None:
        return status in _RETRYABLE_STATUS or 500 <= status < 600
    haystack = f"{type(error).__name__} {error}".lower()
    if any(p in haystack for p in _AUTH_PATTERNS):
        return False
    return any(p in haystack for p in _RETRYABLE_PATTERNS)


def _is_overload(error: Exception) -> bool:
    status = _extract_status_code(error)
    if status is not None:
        return status in _OVERLOAD_STATUS
    haystack = f"{type(error).__name__} {error}".lower()
    return any(p in haystack for p in ("rate limit", "ratelimit", "too many requests", "overloaded", "429", "529"))


class LLMGateway:
    """Routes completions to the fast or strong client with bounded retry.

    Args:
        clients: One client per ``ModelTier``. A missing tier falls back to
            the other one.
        max_retries: Retries after the first attempt (default 2, i.e. 3 calls).
        retry_base_delay: Backoff base in seconds; retry *n* waits
            ``base * 2 ** (n - 1)``.
    """

    def __init__(
        self,
        clients: Dict[ModelTier, BaseLLMClient],
        max_retries: int = 2,
        retry_base_delay: float = 3.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if not clients:
            raise ValueError("LLMGateway needs at least one client")
        self._clients = dict(clients)
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    def client_for(self, tier: ModelTier) -> BaseLLMClient:
        client = self._clients.get(tier)
        if client is None:
            client = next(iter(self._clients.values()))
        return client

    def model_name(self, tier: ModelTier) -> str:
        return self.client_for(tier).config.model

    async def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        tier: ModelTier = ModelTier.STRONG,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        client = self.client_for(tier)
        full_messages = [{"role": "system", "content": system_prompt}, *messages]
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.retry_base_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"[LLM] transient failure ({last_error}), retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                await self._sleep(delay)
            try:
                response = await client.chat_completion(
                    messages=full_messages,
                    tools=tools,
                    config={"max_tokens": max_tokens},
                )
                tc = response.tool_calls or []
                logger.info(
                    f"[LLM] tier={tier.value} model={client.config.model} "
                    f"stop_reason={response.stop_reason.value} tool_calls={len(tc)}"
                )
                return response
            except Exception as e:
                last_error = e
                if not is_retryable(e):
                    logger.error(f"[LLM] fatal error from {client.config.model}: {e}")
                    raise UpstreamError(
                        f"LLM request failed: {e}",
                        status_code=_extract_status_code(e),
                        retryable=False,
                        retry_after=10,
                    ) from e

        overloaded = _is_overload(last_error)
        logger.error(f"[LLM] giving up after {self.max_retries + 1} attempts: {last_error}")
        raise UpstreamError(
            f"LLM request failed after {self.max_retries + 1} attempts: {last_error}",
            status_code=_extract_status_code(last_error),
            retryable=True,
            retry_after=30 if overloaded else 10,
        ) from last_error
