"""
BatchReviewScheduler - periodic reviews of every owner's portfolio.

Daily runs the proactive scanners, then reviews each property on its own
(in small concurrent batches). Weekly and monthly runs do one
portfolio-level review per owner and send the owner a summary
notification. Every mode finishes an owner by advancing their due
workflows.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..constants import MODE_DAILY, MODE_MONTHLY, MODE_WEEKLY, SOURCE_HEARTBEAT_PREFIX
from ..llm import ModelRouter
from ..orchestrator.runner import DirectiveRunner, OwnerContext, load_owner_context
from ..runtime import RunSummary, RuntimeBudget
from ..workflows.engine import WorkflowEngine
from .prompts import build_daily_review, build_monthly_review, build_weekly_review
from .scanners import ProactiveScanner

logger = logging.getLogger(__name__)

SUMMARY_MIN_CHARS = 20
NOTIFICATION_BODY_MAX_CHARS = 500

_PORTFOLIO_NOTIFICATIONS = {
    MODE_WEEKLY: ("weekly_summary", "Weekly Property Summary"),
    MODE_MONTHLY: ("monthly_digest", "Monthly Portfolio Report"),
}


def _address(prop: Dict[str, Any]) -> str:
    return ", ".join(str(v) for v in (prop.get("address_line_1"), prop.get("suburb")) if v)


class BatchReviewScheduler:

    def __init__(
        self,
        store,
        runner: DirectiveRunner,
        workflows: WorkflowEngine,
        scanner: Optional[ProactiveScanner] = None,
        notifier=None,
        router: Optional[ModelRouter] = None,
        property_limit: int = 50,
        concurrency: int = 3,
    ):
        self._store = store
        self._runner = runner
        self._workflows = workflows
        self._scanner = scanner
        self._notifier = notifier
        self._router = router or ModelRouter()
        self.property_limit = property_limit
        self.concurrency = concurrency

    async def run(
        self,
        mode: str,
        summary: RunSummary,
        budget: RuntimeBudget,
        user_id: Optional[str] = None,
        property_id: Optional[str] = None,
        max_properties: Optional[int] = None,
    ) -> None:
        if mode not in (MODE_DAILY, MODE_WEEKLY, MODE_MONTHLY):
            raise ValueError(f"Not a batch mode: {mode}")
        limit = max_properties or self.property_limit

        if mode == MODE_DAILY and self._scanner is not None:
            report = await self._scanner.run(user_id)
            summary.errors.extend(report.errors)

        owners = await self._store.portfolio.owners(user_id)
        logger.info(f"[Batch] {mode} review for {len(owners)} owner(s)")

        for owner_id in owners:
            if budget.expired():
                logger.warning("[Batch] runtime budget exhausted, stopping batch processing")
                break
            if mode == MODE_DAILY and summary.processed >= limit:
                break
            try:
                properties = await self._store.portfolio.properties_for_owner(owner_id, property_id, limit=limit)
                if not properties:
                    continue
                owner = await load_owner_context(self._store, owner_id)
                if mode == MODE_DAILY:
                    await self._review_properties(owner, properties, summary, budget, limit)
                else:
                    await self._review_portfolio(mode, owner, properties, summary)
                await self._workflows.advance_due(summary, budget, user_id=owner_id, owner=owner)
            except Exception as e:
                logger.error(f"[Batch] owner {owner_id} processing failed: {e}")
                summary.errors.append(f"Owner {owner_id}: {e}")

    async def _review_properties(
        self,
        owner: OwnerContext,
        properties: List[Dict[str, Any]],
        summary: RunSummary,
        budget: RuntimeBudget,
        limit: int,
    ) -> None:
        for i in range(0, len(properties), self.concurrency):
            if budget.expired() or summary.processed >= limit:
                break
            batch = properties[i:i + self.concurrency]
            await asyncio.gather(*(self._review_property(owner, prop, summary) for prop in batch))

    async def _review_property(self, owner: OwnerContext, prop: Dict[str, Any], summary: RunSummary) -> None:
        property_id = str(prop["id"])
        summary.processed += 1
        try:
            snapshot = await self._store.portfolio.property_snapshot(property_id, _address(prop))
            result = await self._runner.run(
                owner,
                build_daily_review(snapshot, owner.settings.preset),
                source_tag=f"{SOURCE_HEARTBEAT_PREFIX}{MODE_DAILY}",
                routing=self._router.for_batch(MODE_DAILY),
                event_type="property_review",
                description="You are reviewing properties proactively (daily batch review).",
                property_id=property_id,
                context_snapshot={"property_address": snapshot.address},
            )
            summary.add_loop(result)
        except Exception as e:
            logger.error(f"[Batch] daily review failed for property {property_id}: {e}")
            summary.errors.append(f"Property {property_id}: {e}")

    async def _review_portfolio(
        self,
        mode: str,
        owner: OwnerContext,
        properties: List[Dict[str, Any]],
        summary: RunSummary,
    ) -> None:
        portfolio = await self._store.portfolio.portfolio_summary(owner.user_id)
        build = build_weekly_review if mode == MODE_WEEKLY else build_monthly_review
        result = await self._runner.run(
            owner,
            build(len(properties), portfolio),
            source_tag=f"{SOURCE_HEARTBEAT_PREFIX}{mode}",
            routing=self._router.for_batch(mode),
            event_type="property_review",
            description=f"You are reviewing the whole portfolio proactively ({mode} batch review).",
            context_snapshot={"property_count": len(properties), "owner_name": owner.owner_name},
        )
        summary.processed += len(properties)
        summary.add_loop(result)

        if self._notifier is not None and len(result.response or "") > SUMMARY_MIN_CHARS:
            notification_type, title = _PORTFOLIO_NOTIFICATIONS[mode]
            try:
                sent = await self._notifier.send(
                    owner.user_id,
                    notification_type,
                    title,
                    result.response[:NOTIFICATION_BODY_MAX_CHARS],
                    {"mode": mode, "property_count": len(properties)},
                )
            except Exception as e:
                logger.warning(f"[Batch] {notification_type} notification failed for {owner.user_id}: {e}")
                sent = False
            if sent:
                summary.notifications_sent += 1
