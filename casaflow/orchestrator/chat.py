"""
ChatService - the interactive owner conversation.

One call handles one owner message: rate limit, conversation bookkeeping,
system prompt, contextual tool narrowing, the agentic loop, message
persistence and trajectory recording. Approvals and rejections of pending
actions come through ``handle_pending_action``.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..background import BackgroundTasks
from ..constants import (
    CHAT_EXHAUSTED_RESPONSE,
    DECISION_ACTION_REJECTED,
    SOURCE_CHAT,
)
from ..errors import NotFoundError, PersistenceError, RateLimitedError
from ..gate import TIER_TOOL_ACCESS, AutonomyGate, GateContext
from ..llm import ModelRouter
from ..models import PENDING_STATUS_APPROVED, PENDING_STATUS_REJECTED, Decision, PendingAction
from ..registry import ToolRegistry
from ..trajectory import TrajectoryRecorder, intent_label
from .loop import AgenticLoop
from .loop_config import LoopResult
from .runner import load_owner_context

logger = logging.getLogger(__name__)

ACTION_APPROVE = "approve"
ACTION_REJECT = "reject"

RATE_LIMIT_MESSAGE = "You've sent a lot of messages recently. Please wait a few minutes before sending more."
PENDING_NOT_FOUND_MESSAGE = "Pending action not found or already resolved."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatConfig:
    max_tokens: int = 4096
    history_limit: int = 20
    rate_limit_messages: int = 30
    rate_limit_window: timedelta = timedelta(minutes=15)
    rate_limit_retry_after: int = 60


@dataclass
class ChatReply:
    conversation_id: str
    message: str
    tokens_used: int = 0
    tools_used: List[str] = field(default_factory=list)
    pending_actions: List[Dict[str, Any]] = field(default_factory=list)
    model: Optional[str] = None
    tool_result: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "message": self.message,
            "tokens_used": self.tokens_used,
            "tools_used": self.tools_used,
            "pending_actions": self.pending_actions,
            "model": self.model,
            "tool_result": self.tool_result,
        }


def rejection_rule_text(pending: PendingAction) -> str:
    category = pending.action_type or "general"
    return (
        f'Owner rejected "{pending.tool_name}" action: {pending.title}. '
        f"Do not auto-execute similar {category} actions without explicit approval."
    )


class ChatService:

    def __init__(
        self,
        store,
        loop: AgenticLoop,
        gate: AutonomyGate,
        registry: ToolRegistry,
        recorder: Optional[TrajectoryRecorder] = None,
        router: Optional[ModelRouter] = None,
        learning=None,
        background: Optional[BackgroundTasks] = None,
        config: Optional[ChatConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._loop = loop
        self._gate = gate
        self._registry = registry
        self._recorder = recorder or TrajectoryRecorder(store)
        self._router = router or ModelRouter()
        self._learning = learning
        self.background = background or gate.background
        self.config = config or ChatConfig()
        self._clock = clock

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(
        self,
        user_id: str,
        message: str,
        conversation_id: Optional[str] = None,
    ) -> ChatReply:
        """Answer one owner message.

        Raises:
            RateLimitedError: too many messages in the current window.
            NotFoundError: ``conversation_id`` is not the caller's.
            UpstreamError: the LLM failed after its retries.
        """
        await self._check_rate_limit(user_id)
        conversation_id = await self._conversation(user_id, conversation_id, intent_label(message))

        stored = await self._store.conversations.recent_messages(conversation_id, limit=self.config.history_limit)
        history = [
            {"role": m["role"], "content": m.get("content") or ""}
            for m in stored if m.get("role") in ("user", "assistant")
        ]
        await self._store.conversations.add_message(conversation_id, "user", message)

        owner = await load_owner_context(self._store, user_id)
        tools = self._registry.contextual_tools(message, TIER_TOOL_ACCESS.get(owner.tier))
        routing = self._router.for_chat(message, history)
        ctx = GateContext(
            user_id=user_id,
            settings=owner.settings,
            tier=owner.tier,
            event_source=SOURCE_CHAT,
            conversation_id=conversation_id,
        )
        logger.info(f"[Chat] {user_id} -> {routing.tier.value} ({routing.reason}), {len(tools)} tools offered")

        start = time.monotonic()
        try:
            result = await self._loop.run(
                owner.system_prompt(),
                history + [{"role": "user", "content": message}],
                tools,
                ctx,
                tier=routing.tier,
                max_tokens=self.config.max_tokens,
                exhausted_response=CHAT_EXHAUSTED_RESPONSE,
            )
            duration_ms = int((time.monotonic() - start) * 1000)
            response = result.response + await self._record_trajectory(
                user_id, message, result, conversation_id, duration_ms,
            )
            await self._store.conversations.add_message(
                conversation_id,
                "assistant",
                response,
                tool_calls=[{"name": tc.name, "input": tc.args} for tc in result.tool_calls] or None,
                tool_results=[tc.to_dict() for tc in result.tool_calls] or None,
                tokens_used=result.token_usage.total,
            )
            await self._store.conversations.touch(conversation_id)
        finally:
            await self.background.drain()

        return ChatReply(
            conversation_id=conversation_id,
            message=response,
            tokens_used=result.token_usage.total,
            tools_used=result.tools_used,
            pending_actions=[
                {
                    "id": tc.pending_action_id,
                    "tool_name": tc.name,
                    "params": tc.args,
                    "message": tc.error,
                }
                for tc in result.tool_calls if tc.pending_action_id
            ],
            model=result.model,
        )

    async def _record_trajectory(
        self,
        user_id: str,
        message: str,
        result: LoopResult,
        conversation_id: str,
        duration_ms: int,
    ) -> str:
        """Record the turn and return the efficiency note (possibly empty)."""
        if not result.tool_calls:
            return ""
        try:
            record = await self._recorder.record(user_id, message, result, conversation_id, duration_ms)
            return record.efficiency_note
        except Exception as e:
            logger.warning(f"[Chat] trajectory recording failed for {user_id}: {e}")
            return ""

    async def _check_rate_limit(self, user_id: str) -> None:
        since = self._clock() - self.config.rate_limit_window
        try:
            count = await self._store.conversations.count_user_messages_since(user_id, since)
        except Exception as e:
            logger.error(f"[Chat] rate limit check failed for {user_id}: {e}")
            return
        if count >= self.config.rate_limit_messages:
            raise RateLimitedError(RATE_LIMIT_MESSAGE, retry_after=self.config.rate_limit_retry_after)

    async def _conversation(self, user_id: str, conversation_id: Optional[str], title: str) -> str:
        if conversation_id:
            conversation = await self._store.conversations.get(conversation_id, user_id)
            if conversation is None:
                raise NotFoundError("Conversation not found or access denied")
            return conversation_id
        return await self._store.conversations.create(user_id, title)

    # ------------------------------------------------------------------
    # Pending actions
    # ------------------------------------------------------------------

    async def list_pending(self, user_id: str) -> List[PendingAction]:
        return await self._store.pending_actions.list_pending(user_id)

    async def handle_pending_action(
        self,
        user_id: str,
        action_type: str,
        pending_action_id: str,
        conversation_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> ChatReply:
        """Approve (execute) or reject a pending action.

        Raises:
            ValueError: unknown ``action_type``.
            NotFoundError: ``conversation_id`` is not the caller's.
            PersistenceError: the status change could not be written.
        """
        if action_type not in (ACTION_APPROVE, ACTION_REJECT):
            raise ValueError(f"Unknown action type: {action_type}")
        verb = "Approved" if action_type == ACTION_APPROVE else "Rejected"
        conversation_id = await self._conversation(user_id, conversation_id, message or f"{verb} action")
        await self._store.conversations.add_message(conversation_id, "user", message or f"{verb} action")

        try:
            pending = await self._store.pending_actions.get_pending(pending_action_id, user_id)
            if pending is None:
                reply = ChatReply(conversation_id, PENDING_NOT_FOUND_MESSAGE)
            elif action_type == ACTION_REJECT:
                reply = await self._reject(pending, user_id, conversation_id)
            else:
                reply = await self._approve(pending, user_id, conversation_id)
            await self._store.conversations.add_message(conversation_id, "assistant", reply.message)
        finally:
            await self.background.drain()
        return reply

    async def _resolve(self, pending: PendingAction, user_id: str, status: str) -> bool:
        try:
            return await self._store.pending_actions.resolve(pending.id, user_id, status, user_id)
        except Exception as e:
            raise PersistenceError(f"Failed to mark pending action {pending.id} {status}: {e}") from e

    async def _approve(self, pending: PendingAction, user_id: str, conversation_id: str) -> ChatReply:
        # Claim the action first so two approvals cannot both execute it
        if not await self._resolve(pending, user_id, PENDING_STATUS_APPROVED):
            return ChatReply(conversation_id, PENDING_NOT_FOUND_MESSAGE)

        owner = await load_owner_context(self._store, user_id)
        ctx = GateContext(
            user_id=user_id,
            settings=owner.settings,
            tier=owner.tier,
            event_source=SOURCE_CHAT,
            conversation_id=conversation_id,
        )
        outcome = await self._gate.execute_approved(pending, ctx)
        self._feedback(user_id, "approved", pending)
        logger.info(f"[Chat] {user_id} approved {pending.tool_name} ({pending.id}), success={outcome.success}")

        if outcome.success:
            return ChatReply(
                conversation_id,
                f"Action approved and executed: {pending.title}",
                tools_used=[pending.tool_name],
                tool_result=outcome.result.get("data"),
            )
        return ChatReply(
            conversation_id,
            f"Action approved but execution failed: {outcome.error}",
            tools_used=[pending.tool_name],
        )

    async def _reject(self, pending: PendingAction, user_id: str, conversation_id: str) -> ChatReply:
        if not await self._resolve(pending, user_id, PENDING_STATUS_REJECTED):
            return ChatReply(conversation_id, PENDING_NOT_FOUND_MESSAGE)

        category = pending.action_type or "general"
        self.background.spawn(
            self._store.rules.upsert(user_id, rejection_rule_text(pending), category, confidence=0.7, source="correction"),
            label="rule:rejection",
        )
        self.background.spawn(
            self._store.decisions.record(Decision(
                user_id=user_id,
                conversation_id=conversation_id,
                decision_type=DECISION_ACTION_REJECTED,
                tool_name=pending.tool_name,
                input_data=pending.tool_params,
                autonomy_level=pending.autonomy_level,
                was_auto_executed=False,
                reasoning="Owner rejected this action. A learning rule has been created to prevent similar auto-executions.",
                owner_feedback="rejected",
                event_source=SOURCE_CHAT,
            )),
            label=f"decision:{DECISION_ACTION_REJECTED}",
        )
        self._feedback(user_id, "rejected", pending)
        logger.info(f"[Chat] {user_id} rejected {pending.tool_name} ({pending.id})")
        return ChatReply(
            conversation_id,
            f"Action rejected: {pending.title}. I've noted this preference and won't attempt "
            "similar actions without your approval in the future.",
        )

    def _feedback(self, user_id: str, feedback: str, pending: PendingAction) -> None:
        if self._learning is None:
            return
        self.background.spawn(
            self._learning.process_feedback(
                user_id, feedback, pending.tool_name,
                {"category": pending.action_type or "general", "pending_action_id": pending.id},
            ),
            label=f"learning:{feedback}",
        )
