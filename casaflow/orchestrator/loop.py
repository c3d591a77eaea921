"""
AgenticLoop - the bounded LLM tool-use state machine.

Each iteration:
1. compact the transcript to the token budget
2. call the LLM gateway
3. no tool calls: the accumulated text is the final answer
4. otherwise run every requested tool through the AutonomyGate
   (at most ``tool_concurrency`` at once) and append the assistant message
   plus all tool results to the transcript in one step

When ``max_iterations`` is reached without a final answer the loop returns
a fallback reply with ``exhausted=True``.
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from ..audit_logger import AuditLogger
from ..constants import ORCHESTRATOR_EXHAUSTED_RESPONSE
from ..errors import PersistenceError
from ..gate import AutonomyGate, GateContext, GateOutcome, GateResult
from ..llm import LLMGateway, LLMResponse, ModelTier, ToolCall
from .context_manager import ContextManager
from .loop_config import LoopConfig, LoopResult, ToolCallRecord

logger = logging.getLogger(__name__)


def assistant_message_from_response(response: LLMResponse) -> Dict[str, Any]:
    """Convert an LLMResponse to a transcript message."""
    msg: Dict[str, Any] = {"role": "assistant", "content": response.content or None}
    if response.tool_calls:
        msg["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {
                    "name": tc.name,
                    "arguments": json.dumps(tc.arguments) if isinstance(tc.arguments, dict) else tc.arguments,
                },
            }
            for tc in response.tool_calls
        ]
    return msg


class AgenticLoop:

    def __init__(
        self,
        gateway: LLMGateway,
        gate: AutonomyGate,
        config: Optional[LoopConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._gate = gate
        self.config = config or LoopConfig()
        self._context = ContextManager(self.config)
        self._audit = audit or AuditLogger()

    async def run(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        ctx: GateContext,
        tier: ModelTier = ModelTier.STRONG,
        max_tokens: Optional[int] = None,
        exhausted_response: str = ORCHESTRATOR_EXHAUSTED_RESPONSE,
    ) -> LoopResult:
        start = time.monotonic()
        transcript = list(messages)
        budget = self._context.budget_for(system_prompt)
        result = LoopResult(response="", model=self._gateway.model_name(tier))
        partial_text: List[str] = []

        for turn in range(1, self.config.max_iterations + 1):
            result.turns = turn
            transcript = self._context.compact_messages(transcript, budget)

            response = await self._gateway.complete(
                system_prompt,
                transcript,
                tools=tools,
                tier=tier,
                max_tokens=max_tokens or self.config.max_tokens,
            )
            if response.usage:
                result.token_usage.input_tokens += response.usage.prompt_tokens
                result.token_usage.output_tokens += response.usage.completion_tokens
            if response.model:
                result.model = response.model

            if not response.has_tool_calls:
                if response.content:
                    partial_text.append(response.content)
                result.response = "\n\n".join(t.strip() for t in partial_text if t.strip())
                self._audit.log_loop_turn(turn, [], True, user_id=ctx.user_id)
                result.duration_ms = int((time.monotonic() - start) * 1000)
                logger.info(
                    f"[Loop] finished in {turn} turn(s), tools={len(result.tool_calls)}, "
                    f"tokens={result.token_usage.total}"
                )
                return result

            if response.content:
                partial_text.append(response.content)

            tool_calls = response.tool_calls or []
            self._audit.log_loop_turn(turn, [tc.name for tc in tool_calls], False, user_id=ctx.user_id)
            gate_results = await self._run_tools(tool_calls, ctx)

            tool_messages = []
            for tc, gate_result in zip(tool_calls, gate_results):
                tool_messages.append(self._build_tool_result_message(tc.id, gate_result.result))
                result.tool_calls.append(ToolCallRecord(
                    name=tc.name,
                    args=tc.arguments if isinstance(tc.arguments, dict) else {},
                    outcome=gate_result.outcome.value,
                    success=gate_result.success,
                    duration_ms=gate_result.duration_ms,
                    turn=turn,
                    error=gate_result.error,
                    pending_action_id=gate_result.pending_action_id,
                ))
                if gate_result.pending_action_id:
                    result.pending_action_ids.append(gate_result.pending_action_id)

            transcript = transcript + [assistant_message_from_response(response)] + tool_messages

        logger.warning(f"[Loop] iteration limit ({self.config.max_iterations}) reached for {ctx.user_id}")
        result.response = exhausted_response
        result.exhausted = True
        result.duration_ms = int((time.monotonic() - start) * 1000)
        return result

    async def _run_tools(self, tool_calls: List[ToolCall], ctx: GateContext) -> List[GateResult]:
        semaphore = asyncio.Semaphore(self.config.tool_concurrency)

        async def _run_one(tc: ToolCall) -> GateResult:
            async with semaphore:
                args = tc.arguments if isinstance(tc.arguments, dict) else {}
                return await self._gate.evaluate(tc.name, args, ctx)

        outcomes = await asyncio.gather(*[_run_one(tc) for tc in tool_calls], return_exceptions=True)

        results: List[GateResult] = []
        for tc, outcome in zip(tool_calls, outcomes):
            if isinstance(outcome, PersistenceError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(f"[Loop] gate raised for {tc.name}: {outcome}")
                outcome = GateResult(
                    tc.name,
                    GateOutcome.EXECUTED,
                    {"success": False, "error": f"Tool execution failed: {outcome}"},
                )
            results.append(outcome)
        return results

    def _build_tool_result_message(self, tool_call_id: str, result: Dict[str, Any]) -> Dict[str, Any]:
        content = json.dumps(result, default=str)
        limit = self.config.max_tool_result_chars
        if len(content) > limit:
            content = content[:limit] + "\n[...truncated]"
        return {"role": "tool", "tool_call_id": tool_call_id, "content": content}
