"""
DirectiveRunner - runs one unattended directive (event, property review or
workflow step) for one owner through the agentic loop and records it in the
agent event log.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..audit_logger import AuditLogger
from ..constants import REASONING_MAX_CHARS
from ..gate import GateContext, TIER_TOOL_ACCESS
from ..gate.autonomy import AutonomySettings, SubscriptionTier
from ..llm import RoutingDecision
from ..models import Trajectory
from ..registry import ToolRegistry
from .loop import AgenticLoop
from .loop_config import LoopResult
from .prompts import build_system_prompt, render_orchestrator_context

logger = logging.getLogger(__name__)


@dataclass
class OwnerContext:
    """Everything needed to act for one owner, loaded once per run."""
    user_id: str
    settings: AutonomySettings
    tier: SubscriptionTier = SubscriptionTier.STARTER
    owner_name: str = "there"
    rules: List[Dict[str, Any]] = field(default_factory=list)
    golden_paths: List[Trajectory] = field(default_factory=list)

    def system_prompt(self, orchestrator_context: str = "") -> str:
        return build_system_prompt(
            settings=self.settings,
            owner_name=self.owner_name,
            rules=self.rules,
            golden_paths=self.golden_paths,
            orchestrator_context=orchestrator_context,
        )


async def load_owner_context(store, user_id: str) -> OwnerContext:
    settings = await store.settings.get_autonomy(user_id)
    tier = await store.settings.get_tier(user_id)
    profile = await store.settings.get_profile(user_id) or {}
    rules = await store.rules.active_for_user(user_id)
    golden = await store.trajectories.golden_paths(user_id)
    return OwnerContext(
        user_id=user_id,
        settings=settings,
        tier=tier,
        owner_name=profile.get("full_name") or "there",
        rules=rules,
        golden_paths=golden,
    )


class DirectiveRunner:

    def __init__(
        self,
        store,
        loop: AgenticLoop,
        registry: ToolRegistry,
        audit: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._loop = loop
        self._registry = registry
        self._audit = audit or AuditLogger()

    async def run(
        self,
        owner: OwnerContext,
        directive: str,
        source_tag: str,
        routing: RoutingDecision,
        event_type: str,
        description: str,
        property_id: Optional[str] = None,
        context_snapshot: Optional[Dict[str, Any]] = None,
        show_property: bool = False,
    ) -> LoopResult:
        """Run *directive* for *owner* and log an agent event row.

        Exceptions from the loop (LLM or persistence failures) propagate so
        the caller can record them against its unit of work.
        """
        context_block = render_orchestrator_context(
            description, source_tag, (property_id or "") if show_property else None,
        )
        system_prompt = owner.system_prompt(context_block)
        tools = self._registry.schemas(allowed_categories=TIER_TOOL_ACCESS.get(owner.tier))
        ctx = GateContext(
            user_id=owner.user_id,
            settings=owner.settings,
            tier=owner.tier,
            event_source=source_tag,
            property_id=property_id,
        )
        result = await self._loop.run(
            system_prompt,
            [{"role": "user", "content": directive}],
            tools,
            ctx,
            tier=routing.tier,
        )
        logger.info(
            f"[Runner] {source_tag} for {owner.user_id}: {result.turns} turns, "
            f"{len(result.tool_calls)} tool calls, {result.actions_taken} actions"
        )
        await self._log_event(owner.user_id, source_tag, event_type, result, context_snapshot, property_id)
        return result

    async def _log_event(
        self,
        user_id: str,
        source_tag: str,
        event_type: str,
        result: LoopResult,
        context_snapshot: Optional[Dict[str, Any]],
        property_id: Optional[str],
    ) -> None:
        try:
            await self._store.event_log.record(
                user_id=user_id,
                event_source=source_tag,
                event_type=event_type,
                model=result.model,
                reasoning=result.response[:REASONING_MAX_CHARS],
                tools_called=[{"name": tc.name, "input": tc.args} for tc in result.tool_calls],
                actions_taken=result.actions_taken,
                tokens_used=result.token_usage.total,
                duration_ms=result.duration_ms,
                context_snapshot=context_snapshot,
                property_id=property_id,
            )
        except Exception as e:
            logger.warning(f"[Runner] failed to log agent event for {source_tag}: {e}")
