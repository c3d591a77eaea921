"""
AutonomyGate - decides, per tool call, whether the agent may act on its own.

Order of checks for ``evaluate``:

1. Unknown tool, then subscription tier (never executes when blocked).
2. Financial threshold on any cost carried by the parameters.
3. Emergency override for notification tools on urgent sources.
4. Owner's granted level against the tool's required level.
5. Confidence escalation (+1 required level when the composite is low).
6. Execute through the dispatcher with a timeout.

A deferral writes a PendingAction (awaited; failure raises
PersistenceError) and returns a ``needs_approval`` result to the LLM. Audit
rows, genome statistics, outcomes and learning calls are fire and forget.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..audit_logger import AuditLogger
from ..background import BackgroundTasks
from ..constants import (
    DECISION_AUTONOMY_GATE,
    DECISION_CONFIDENCE_GATE,
    DECISION_TOOL_EXECUTION,
    DECISION_TOOL_EXECUTION_APPROVED,
    PENDING_TITLE_PARAMS_MAX_CHARS,
    REASONING_MAX_CHARS,
)
from ..dispatcher import ToolDispatcher, normalize_result, unknown_tool_result
from ..errors import PersistenceError
from ..models import Decision, PendingAction
from ..registry import ToolCategory, ToolMeta, ToolRegistry
from .autonomy import AutonomySettings, SubscriptionTier, required_tier_label, tier_allows
from .confidence import ConfidenceFactors, ConfidenceScorer
from .policy import (
    classify_tool_error,
    emergency_override_applies,
    escalate_for_confidence,
    extract_cost,
)

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 30.0

# Categories that skip confidence scoring and outcome tracking
_READ_ONLY_CATEGORIES = (ToolCategory.QUERY, ToolCategory.MEMORY)


class GateOutcome(str, Enum):
    EXECUTED = "executed"
    DEFERRED = "deferred"
    TIER_BLOCKED = "tier_blocked"
    UNKNOWN_TOOL = "unknown_tool"


@dataclass
class GateContext:
    """Who is acting, under which settings, and on behalf of what."""
    user_id: str
    settings: AutonomySettings
    tier: SubscriptionTier = SubscriptionTier.STARTER
    event_source: Optional[str] = None
    conversation_id: Optional[str] = None
    property_id: Optional[str] = None
    intent_hash: Optional[str] = None


@dataclass
class GateResult:
    tool_name: str
    outcome: GateOutcome
    result: Dict[str, Any]
    duration_ms: int = 0
    pending_action_id: Optional[str] = None
    confidence: Optional[ConfidenceFactors] = None

    @property
    def success(self) -> bool:
        return self.result.get("success") is True

    @property
    def executed(self) -> bool:
        return self.outcome == GateOutcome.EXECUTED

    @property
    def error(self) -> Optional[str]:
        if self.success:
            return None
        return self.result.get("error") or self.result.get("message")


class AutonomyGate:

    def __init__(
        self,
        registry: ToolRegistry,
        store,
        dispatcher: ToolDispatcher,
        scorer: Optional[ConfidenceScorer] = None,
        audit: Optional[AuditLogger] = None,
        learning=None,
        background: Optional[BackgroundTasks] = None,
        tool_timeout: float = DEFAULT_TOOL_TIMEOUT,
    ):
        self.registry = registry
        self._store = store
        self._dispatcher = dispatcher
        self._scorer = scorer if scorer is not None else ConfidenceScorer(store)
        self._audit = audit or AuditLogger()
        self._learning = learning
        self.background = background or BackgroundTasks()
        self._tool_timeout = tool_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def evaluate(self, tool_name: str, params: Dict[str, Any], ctx: GateContext) -> GateResult:
        params = params or {}
        meta = self.registry.lookup(tool_name)
        if meta is None:
            logger.warning(f"[Gate] unknown tool requested: {tool_name}")
            return GateResult(tool_name, GateOutcome.UNKNOWN_TOOL, unknown_tool_result(tool_name))

        if not tier_allows(ctx.tier, meta.category):
            plan = required_tier_label(meta.category)
            message = (
                f"This feature is available on the {plan} plan. "
                f"Upgrade to let me use {meta.category.value} tools like {tool_name}."
            )
            self._audit.log_gate_decision(
                tool_name, GateOutcome.TIER_BLOCKED.value, meta.required_level, -1,
                f"tier:{ctx.tier.value}", user_id=ctx.user_id, event_source=ctx.event_source,
            )
            return GateResult(
                tool_name,
                GateOutcome.TIER_BLOCKED,
                {"success": False, "tier_blocked": True, "message": message},
            )

        required = meta.required_level
        granted = ctx.settings.level_for(meta.category)
        emergency = emergency_override_applies(tool_name, ctx.event_source)

        cost = extract_cost(params)
        threshold = ctx.settings.financial_threshold
        if cost is not None and cost > threshold and not emergency:
            recommendation = (
                f"This action involves ${cost:,.2f}, which is above your ${threshold:,.0f} "
                f"auto-approval limit for the {ctx.settings.preset.value} preset."
            )
            return await self._defer(
                meta, params, ctx, required, granted,
                decision_type=DECISION_AUTONOMY_GATE,
                recommendation=recommendation,
                reasoning=f"Financial threshold exceeded: ${cost:,.2f} > ${threshold:,.0f}",
                reason="financial_threshold",
            )

        if emergency:
            logger.info(f"[Gate] emergency override for {tool_name} (source={ctx.event_source})")
            self._audit.log_gate_decision(
                tool_name, GateOutcome.EXECUTED.value, required, granted,
                "emergency_override", user_id=ctx.user_id, event_source=ctx.event_source,
            )
            return await self._execute(
                meta, params, ctx, required,
                decision_type=DECISION_TOOL_EXECUTION,
                reasoning=f"Emergency override: {tool_name} for urgent source {ctx.event_source}",
            )

        if granted < required:
            recommendation = (
                f"This action requires your approval because your autonomy setting for "
                f"\"{meta.category.value}\" is L{granted} and this action requires L{required}."
            )
            return await self._defer(
                meta, params, ctx, required, granted,
                decision_type=DECISION_AUTONOMY_GATE,
                recommendation=recommendation,
                reasoning=f"Autonomy L{granted} < required L{required} for {meta.category.value}",
                reason="autonomy_level",
            )

        factors: Optional[ConfidenceFactors] = None
        if meta.category not in _READ_ONLY_CATEGORIES:
            try:
                factors = await self._scorer.score(ctx.user_id, tool_name, meta.category, ctx.intent_hash)
            except Exception as e:
                logger.warning(f"[Gate] confidence scoring failed for {tool_name}, continuing: {e}")

        if factors is not None:
            adjusted = escalate_for_confidence(required, factors.composite)
            if adjusted > required and granted < adjusted:
                pct = round(factors.composite * 100)
                return await self._defer(
                    meta, params, ctx, adjusted, granted,
                    decision_type=DECISION_CONFIDENCE_GATE,
                    recommendation=(
                        f"This action has low confidence ({pct}%) and requires your approval "
                        f"as a safety measure."
                    ),
                    reasoning=(
                        f"Low confidence ({pct}%) triggered approval gate. "
                        f"Autonomy escalated from L{required} to L{adjusted}."
                    ),
                    reason="low_confidence",
                    factors=factors,
                )

        self._audit.log_gate_decision(
            tool_name, GateOutcome.EXECUTED.value, required, granted, "within_autonomy",
            user_id=ctx.user_id, event_source=ctx.event_source,
            confidence=factors.composite if factors else None,
        )
        return await self._execute(
            meta, params, ctx, required,
            decision_type=DECISION_TOOL_EXECUTION,
            reasoning=f"Auto-executed {tool_name} at L{granted} (requires L{required})",
            factors=factors,
        )

    async def execute_approved(self, pending: PendingAction, ctx: GateContext) -> GateResult:
        """Run a pending action the owner approved. Level checks do not apply."""
        meta = self.registry.lookup(pending.tool_name)
        if meta is None:
            return GateResult(pending.tool_name, GateOutcome.UNKNOWN_TOOL, unknown_tool_result(pending.tool_name))
        return await self._execute(
            meta, pending.tool_params or {}, ctx, pending.autonomy_level,
            decision_type=DECISION_TOOL_EXECUTION_APPROVED,
            reasoning=f"Owner approved pending action: {pending.title}",
            was_auto_executed=False,
            owner_feedback="approved",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _defer(
        self,
        meta: ToolMeta,
        params: Dict[str, Any],
        ctx: GateContext,
        required: int,
        granted: int,
        decision_type: str,
        recommendation: str,
        reasoning: str,
        reason: str,
        factors: Optional[ConfidenceFactors] = None,
    ) -> GateResult:
        params_text = json.dumps(params, default=str)[:PENDING_TITLE_PARAMS_MAX_CHARS]
        pending = PendingAction(
            user_id=ctx.user_id,
            conversation_id=ctx.conversation_id,
            action_type=meta.category.value,
            title=f"{meta.name}: {params_text}",
            description=meta.description,
            tool_name=meta.name,
            tool_params=params,
            autonomy_level=required,
            recommendation=recommendation,
        )
        try:
            pending_id = await self._store.pending_actions.create(pending)
        except Exception as e:
            raise PersistenceError(f"Failed to record pending action for {meta.name}: {e}") from e

        logger.info(f"[Gate] deferred {meta.name} ({reason}): L{granted} < L{required}")
        self._audit.log_gate_decision(
            meta.name, GateOutcome.DEFERRED.value, required, granted, reason,
            user_id=ctx.user_id, event_source=ctx.event_source,
            confidence=factors.composite if factors else None,
        )
        self.background.spawn(
            self._store.decisions.record(Decision(
                user_id=ctx.user_id,
                conversation_id=ctx.conversation_id,
                decision_type=decision_type,
                tool_name=meta.name,
                input_data=params,
                autonomy_level=required,
                confidence=factors.composite if factors else None,
                confidence_factors=factors.to_dict() if factors else None,
                was_auto_executed=False,
                reasoning=reasoning[:REASONING_MAX_CHARS],
                event_source=ctx.event_source,
            )),
            label=f"decision:{decision_type}",
        )
        return GateResult(
            meta.name,
            GateOutcome.DEFERRED,
            {
                "success": False,
                "needs_approval": True,
                "pending_action_id": pending_id,
                "message": f"This action requires owner approval. {recommendation}",
            },
            pending_action_id=pending_id,
            confidence=factors,
        )

    async def _execute(
        self,
        meta: ToolMeta,
        params: Dict[str, Any],
        ctx: GateContext,
        required: int,
        decision_type: str,
        reasoning: str,
        factors: Optional[ConfidenceFactors] = None,
        was_auto_executed: bool = True,
        owner_feedback: Optional[str] = None,
    ) -> GateResult:
        start = time.monotonic()
        try:
            raw = await asyncio.wait_for(
                self._dispatcher.execute(meta.name, params, ctx.user_id),
                timeout=self._tool_timeout,
            )
            result = normalize_result(raw)
        except asyncio.TimeoutError:
            result = {"success": False, "error": f"Tool \"{meta.name}\" timed out after {self._tool_timeout:g}s"}
        except Exception as e:
            result = {"success": False, "error": str(e) or f"Tool execution failed: {meta.name}"}
        duration_ms = int((time.monotonic() - start) * 1000)

        success = result.get("success") is True
        error = None if success else str(result.get("error") or "Tool execution failed")
        error_type = None if success else classify_tool_error(error)
        self._audit.log_tool_execution(meta.name, success, duration_ms, error=error, user_id=ctx.user_id)
        if not success:
            logger.warning(f"[Gate] {meta.name} failed ({error_type}): {error}")

        store = self._store
        self.background.spawn(
            store.genome.record_execution(ctx.user_id, meta.name, success, duration_ms, params, error),
            label=f"genome:{meta.name}",
        )
        if meta.category not in _READ_ONLY_CATEGORIES:
            self.background.spawn(
                store.outcomes.record(
                    ctx.user_id, meta.name, "success" if success else "failure",
                    duration_ms=duration_ms, error=error,
                ),
                label=f"outcome:{meta.name}",
            )
        if error_type and self._learning is not None:
            self.background.spawn(
                self._learning.classify_and_learn(ctx.user_id, meta.name, error, error_type, params),
                label=f"learning:{meta.name}",
            )
        self.background.spawn(
            store.decisions.record(Decision(
                user_id=ctx.user_id,
                conversation_id=ctx.conversation_id,
                decision_type=decision_type,
                tool_name=meta.name,
                input_data=params,
                output_data=result,
                autonomy_level=required,
                confidence=factors.composite if factors else None,
                confidence_factors=factors.to_dict() if factors else None,
                was_auto_executed=was_auto_executed,
                duration_ms=duration_ms,
                reasoning=reasoning[:REASONING_MAX_CHARS],
                owner_feedback=owner_feedback,
                error_type=error_type,
                event_source=ctx.event_source,
            )),
            label=f"decision:{decision_type}",
        )
        return GateResult(meta.name, GateOutcome.EXECUTED, result, duration_ms=duration_ms, confidence=factors)
