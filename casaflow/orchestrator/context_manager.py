"""Transcript size estimation and compaction.

Two lines of defense, applied before every LLM call:

Defense 1 -- Tool-result compaction: older tool results in the middle of
the transcript are reduced to ``{"success", "summary"}``.
Defense 2 -- Middle replacement: if still over budget, the whole middle is
replaced by a single notice message.

The first ``keep_head`` and last ``keep_tail`` messages are always kept, and
an assistant tool-call message is never separated from its tool results.
"""

import json
import math
from typing import Any, Dict, List

from .loop_config import LoopConfig

CHARS_PER_TOKEN = 3.5
PER_MESSAGE_OVERHEAD = 5
PER_TOOL_CALL_OVERHEAD = 20

COMPACTION_NOTICE = "[Earlier conversation history has been compacted to stay within context limits]"


def estimate_text_tokens(text: str) -> int:
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                text = part.get("text") or part.get("content", "")
                parts.append(text if isinstance(text, str) else json.dumps(text, default=str))
            elif isinstance(part, str):
                parts.append(part)
        return "".join(parts)
    return json.dumps(content, default=str)


def estimate_tokens(messages: List[Dict[str, Any]]) -> int:
    """Conservative token estimate for a transcript."""
    total = 0
    for msg in messages:
        total += estimate_text_tokens(_content_text(msg.get("content"))) + PER_MESSAGE_OVERHEAD
        for tc in msg.get("tool_calls") or []:
            arguments = (tc.get("function") or {}).get("arguments") or ""
            total += PER_TOOL_CALL_OVERHEAD + estimate_text_tokens(str(arguments))
    return total


def _compact_tool_message(msg: Dict[str, Any]) -> Dict[str, Any]:
    if msg.get("role") != "tool":
        return msg
    raw = msg.get("content")
    success = True
    summary = "completed"
    try:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
    except (json.JSONDecodeError, TypeError):
        parsed = None
    if isinstance(parsed, dict):
        success = parsed.get("success", True) is not False
        if not success:
            summary = str(parsed.get("error") or parsed.get("message") or "failed")[:200]
    elif isinstance(raw, str) and raw.startswith("[ERROR]"):
        success = False
        summary = raw[:200]
    return {**msg, "content": json.dumps({"success": success, "summary": summary})}


class ContextManager:
    """Keeps the transcript within the token budget."""

    def __init__(self, config: LoopConfig) -> None:
        self.config = config

    def budget_for(self, system_prompt: str) -> int:
        return self.config.context_token_budget - estimate_text_tokens(system_prompt)

    def compact_messages(self, messages: List[Dict[str, Any]], budget: int) -> List[Dict[str, Any]]:
        keep_head = self.config.keep_head_messages
        keep_tail = self.config.keep_tail_messages
        if len(messages) <= keep_head + keep_tail or estimate_tokens(messages) <= budget:
            return messages

        head_end = keep_head
        while head_end < len(messages) and messages[head_end].get("role") == "tool":
            head_end += 1

        tail_start = len(messages) - keep_tail
        while tail_start > head_end and messages[tail_start].get("role") == "tool":
            tail_start -= 1

        if tail_start <= head_end:
            return messages

        head = messages[:head_end]
        middle = messages[head_end:tail_start]
        tail = messages[tail_start:]

        compacted = head + [_compact_tool_message(m) for m in middle] + tail
        if estimate_tokens(compacted) <= budget:
            return compacted

        return head + [{"role": "user", "content": COMPACTION_NOTICE}] + tail
