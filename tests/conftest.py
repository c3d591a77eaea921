"""
Shared fixtures for casaflow tests.

FakeStore mirrors the attribute and method names of ``casaflow.db.Store``
with in-memory tables, so services can be exercised without Postgres.
ScriptedLLMClient replays canned LLMResponses (or raises canned errors).
"""

import itertools
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from casaflow.background import BackgroundTasks
from casaflow.batch.models import PropertySnapshot
from casaflow.dispatcher import ToolDispatcher, normalize_result, unknown_tool_result
from casaflow.events.models import Event
from casaflow.gate import AutonomyGate, AutonomyPreset, AutonomySettings, GateContext, SubscriptionTier
from casaflow.gate.genome import apply_execution, update_co_occurrence
from casaflow.llm import LLMConfig, LLMGateway, LLMResponse, ModelTier, StopReason, ToolCall, Usage
from casaflow.llm.base import BaseLLMClient
from casaflow.models import PENDING_STATUS_PENDING, Decision, PendingAction, Trajectory
from casaflow.orchestrator.loop_config import LoopResult, TokenUsage
from casaflow.registry import ToolRegistry
from casaflow.workflows.models import Workflow, WorkflowStatus

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# =============================================================================
# In-memory repositories
# =============================================================================

class FakeEventRepo:

    def __init__(self):
        self.rows: Dict[str, Event] = {}

    async def enqueue(self, event: Event) -> str:
        event.id = event.id or _next_id("evt")
        event.created_at = event.created_at or datetime.now(timezone.utc)
        self.rows[event.id] = event
        return event.id

    async def fetch_unprocessed(self, limit: int = 20, user_id: Optional[str] = None) -> List[Event]:
        events = [e for e in self.rows.values() if not e.processed and (user_id is None or e.user_id == user_id)]
        events.sort(key=lambda e: (e.rank, e.created_at))
        return events[:limit]

    async def mark_processed(self, event_id: str, error: Optional[str] = None) -> bool:
        event = self.rows[event_id]
        if event.processed:
            return False
        event.processed = True
        event.processed_at = datetime.now(timezone.utc)
        event.error = error
        return True

    async def record_failed_attempt(self, event_id: str, error: str) -> int:
        event = self.rows[event_id]
        if event.processed:
            return 0
        event.attempts += 1
        event.error = error
        return event.attempts

    async def has_unprocessed(self, event_type: str, user_id: str, entity_key: str, entity_id: str) -> bool:
        return any(
            e.event_type == event_type and e.user_id == user_id and not e.processed
            and str(e.payload.get(entity_key)) == str(entity_id)
            for e in self.rows.values()
        )


class FakeEventLogRepo:

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []

    async def record(self, **kwargs) -> None:
        self.rows.append(kwargs)


class FakePendingActionRepo:

    def __init__(self):
        self.rows: Dict[str, PendingAction] = {}
        self.fail_create = False

    async def create(self, action: PendingAction) -> str:
        if self.fail_create:
            raise RuntimeError("connection reset")
        action.id = _next_id("pa")
        action.status = PENDING_STATUS_PENDING
        action.created_at = datetime.now(timezone.utc)
        self.rows[action.id] = action
        return action.id

    async def get(self, action_id: str, user_id: str) -> Optional[PendingAction]:
        action = self.rows.get(action_id)
        return action if action and action.user_id == user_id else None

    async def get_pending(self, action_id: str, user_id: str) -> Optional[PendingAction]:
        action = await self.get(action_id, user_id)
        return action if action and action.status == PENDING_STATUS_PENDING else None

    async def resolve(self, action_id: str, user_id: str, status: str, resolved_by: str) -> bool:
        action = await self.get_pending(action_id, user_id)
        if action is None:
            return False
        action.status = status
        action.resolved_by = resolved_by
        action.resolved_at = datetime.now(timezone.utc)
        return True

    async def list_pending(self, user_id: str, limit: int = 50) -> List[PendingAction]:
        return [a for a in self.rows.values() if a.user_id == user_id and a.status == PENDING_STATUS_PENDING][:limit]


class FakeDecisionRepo:

    def __init__(self):
        self.rows: List[Decision] = []
        self.feedback: List[Dict[str, Any]] = []

    async def record(self, decision: Decision) -> None:
        self.rows.append(decision)

    async def recent_feedback(self, user_id: str, tool_name: str, limit: int = 5) -> List[Dict[str, Any]]:
        return [f for f in self.feedback if f.get("tool_name") == tool_name][:limit]


class FakeTrajectoryRepo:

    def __init__(self):
        self.rows: Dict[str, Trajectory] = {}

    async def insert(self, trajectory: Trajectory) -> str:
        trajectory.id = _next_id("traj")
        self.rows[trajectory.id] = trajectory
        return trajectory.id

    async def golden_for_intent(self, user_id: str, intent_hash: str) -> Optional[Dict[str, Any]]:
        for t in self.rows.values():
            if t.user_id == user_id and t.intent_hash == intent_hash and t.is_golden:
                return {"id": t.id, "tool_sequence": [s.to_dict() for s in t.tool_sequence]}
        return None

    async def successful_for_intent(self, user_id: str, intent_hash: str, limit: int = 20) -> List[Trajectory]:
        return [
            t for t in self.rows.values()
            if t.user_id == user_id and t.intent_hash == intent_hash and t.success
        ][:limit]

    async def set_golden(self, user_id: str, intent_hash: str, trajectory_id: str) -> None:
        for t in self.rows.values():
            if t.user_id == user_id and t.intent_hash == intent_hash:
                t.is_golden = t.id == trajectory_id

    async def golden_paths(self, user_id: str, limit: int = 5) -> List[Trajectory]:
        return [t for t in self.rows.values() if t.user_id == user_id and t.is_golden][:limit]


class FakeWorkflowRepo:

    def __init__(self):
        self.rows: Dict[str, Workflow] = {}

    async def create(self, workflow: Workflow) -> str:
        workflow_id = _next_id("wf")
        self.rows[workflow_id] = workflow
        return workflow_id

    async def due(self, now: datetime, limit: int = 10, user_id: Optional[str] = None) -> List[Workflow]:
        due = [
            w for w in self.rows.values()
            if w.status == WorkflowStatus.ACTIVE and w.next_action_at is not None and w.next_action_at <= now
            and (user_id is None or w.user_id == user_id)
        ]
        due.sort(key=lambda w: w.next_action_at)
        return due[:limit]

    async def save_progress(self, workflow: Workflow) -> bool:
        stored = self.rows.get(workflow.id)
        return stored is not None

    async def has_active(self, workflow_type: str, user_id: str, tenancy_id=None, property_id=None) -> bool:
        for w in self.rows.values():
            if w.workflow_type != workflow_type or w.user_id != user_id or w.status != WorkflowStatus.ACTIVE:
                continue
            if tenancy_id and w.tenancy_id == tenancy_id:
                return True
            if not tenancy_id and w.property_id == property_id:
                return True
        return False

    async def list_for_user(self, user_id: str, status: WorkflowStatus = WorkflowStatus.ACTIVE) -> List[Workflow]:
        return [w for w in self.rows.values() if w.user_id == user_id and w.status == status]


class FakeSettingsRepo:

    def __init__(self):
        self.autonomy: Dict[str, AutonomySettings] = {}
        self.tiers: Dict[str, SubscriptionTier] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}

    async def get_autonomy(self, user_id: str) -> AutonomySettings:
        return self.autonomy.get(user_id) or AutonomySettings(user_id=user_id)

    async def save_autonomy(self, settings: AutonomySettings) -> None:
        self.autonomy[settings.user_id] = settings

    async def get_tier(self, user_id: str) -> SubscriptionTier:
        return self.tiers.get(user_id, SubscriptionTier.STARTER)

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.profiles.get(user_id)


class FakeGenomeRepo:

    def __init__(self):
        self.rows: Dict[tuple, Dict[str, Any]] = {}

    async def get(self, user_id: str, tool_name: str) -> Optional[Dict[str, Any]]:
        return self.rows.get((user_id, tool_name))

    async def record_execution(self, user_id, tool_name, success, duration_ms, params=None, error=None) -> None:
        existing = self.rows.get((user_id, tool_name))
        fields = apply_execution(existing, success, duration_ms, params, error)
        self.rows[(user_id, tool_name)] = {**(existing or {}), **fields}

    async def record_co_occurrence(self, user_id: str, tool_names: List[str], success: bool) -> None:
        for tool_name in tool_names:
            genome = self.rows.get((user_id, tool_name))
            if genome:
                genome["co_occurrence"] = update_co_occurrence(genome.get("co_occurrence"), tool_name, tool_names, success)


class FakeOutcomeRepo:

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []

    async def record(self, user_id, tool_name, outcome_type, duration_ms=0, error=None) -> None:
        self.rows.append({
            "user_id": user_id, "tool_name": tool_name, "outcome_type": outcome_type,
            "duration_ms": duration_ms, "error": error,
        })

    async def recent(self, user_id: str, tool_name: str, limit: int = 20) -> List[Dict[str, Any]]:
        return [r for r in self.rows if r["user_id"] == user_id and r["tool_name"] == tool_name][-limit:]


class FakeRuleRepo:

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []

    async def active_for_category(self, user_id: str, category: str, limit: int = 5) -> List[Dict[str, Any]]:
        return [r for r in self.rows if r["user_id"] == user_id and r["category"] == category][:limit]

    async def active_for_user(self, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return [r for r in self.rows if r["user_id"] == user_id][:limit]

    async def upsert(self, user_id, rule_text, category, confidence=0.7, source="correction") -> None:
        self.rows = [r for r in self.rows if not (r["user_id"] == user_id and r["rule_text"] == rule_text)]
        self.rows.append({
            "user_id": user_id, "rule_text": rule_text, "category": category,
            "confidence": confidence, "source": source,
        })


class FakeConversationRepo:

    def __init__(self):
        self.conversations: Dict[str, Dict[str, Any]] = {}
        self.messages: List[Dict[str, Any]] = []
        self.user_message_count = 0
        self.fail_count = False

    async def create(self, user_id: str, title: str) -> str:
        conversation_id = _next_id("conv")
        self.conversations[conversation_id] = {"id": conversation_id, "user_id": user_id, "title": title}
        return conversation_id

    async def get(self, conversation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        conversation = self.conversations.get(conversation_id)
        return conversation if conversation and conversation["user_id"] == user_id else None

    async def touch(self, conversation_id: str) -> None:
        self.conversations[conversation_id]["touched"] = True

    async def recent_messages(self, conversation_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m["conversation_id"] == conversation_id][-limit:]

    async def add_message(self, conversation_id, role, content, tool_calls=None, tool_results=None, tokens_used=0) -> None:
        self.messages.append({
            "conversation_id": conversation_id, "role": role, "content": content,
            "tool_calls": tool_calls, "tool_results": tool_results, "tokens_used": tokens_used,
        })

    async def count_user_messages_since(self, user_id: str, since: datetime) -> int:
        if self.fail_count:
            raise RuntimeError("count query failed")
        return self.user_message_count


class FakePortfolioRepo:

    def __init__(self):
        self.owner_properties: Dict[str, List[Dict[str, Any]]] = {}
        self.snapshots: Dict[str, PropertySnapshot] = {}
        self.summary: Dict[str, Any] = {"active_tenancies": 2, "open_maintenance": 1, "arrears_total": 0}
        self.expiring: List[Dict[str, Any]] = []
        self.compliance: List[Dict[str, Any]] = []
        self.stalled: List[Dict[str, Any]] = []
        self.vacant: List[Dict[str, Any]] = []
        self.rent_reviews: List[Dict[str, Any]] = []
        self.failing_scans = set()

    async def owners(self, user_id: Optional[str] = None) -> List[str]:
        return [o for o in self.owner_properties if user_id is None or o == user_id]

    async def properties_for_owner(self, user_id, property_id=None, limit=50) -> List[Dict[str, Any]]:
        props = self.owner_properties.get(user_id, [])
        if property_id:
            props = [p for p in props if p["id"] == property_id]
        return props[:limit]

    async def property_snapshot(self, property_id: str, address: str = "") -> PropertySnapshot:
        return self.snapshots.get(property_id) or PropertySnapshot(property_id=property_id, address=address)

    async def portfolio_summary(self, user_id: str) -> Dict[str, Any]:
        return dict(self.summary)

    def _rows(self, name, rows, user_id):
        if name in self.failing_scans:
            raise RuntimeError(f"{name} query failed")
        return [r for r in rows if user_id is None or r["owner_id"] == user_id]

    async def leases_expiring(self, within_days=60, user_id=None):
        return self._rows("leases", self.expiring, user_id)

    async def compliance_due(self, within_days=14, user_id=None):
        return self._rows("compliance", self.compliance, user_id)

    async def stalled_maintenance(self, stale_days=7, user_id=None):
        return self._rows("stalled", self.stalled, user_id)

    async def vacant_properties(self, user_id=None):
        return self._rows("vacant", self.vacant, user_id)

    async def rent_review_due(self, months=12, user_id=None):
        return self._rows("rent_reviews", self.rent_reviews, user_id)


class FakeStore:
    """In-memory stand-in for casaflow.db.Store."""

    def __init__(self):
        self.events = FakeEventRepo()
        self.event_log = FakeEventLogRepo()
        self.pending_actions = FakePendingActionRepo()
        self.decisions = FakeDecisionRepo()
        self.trajectories = FakeTrajectoryRepo()
        self.workflows = FakeWorkflowRepo()
        self.settings = FakeSettingsRepo()
        self.genome = FakeGenomeRepo()
        self.outcomes = FakeOutcomeRepo()
        self.rules = FakeRuleRepo()
        self.conversations = FakeConversationRepo()
        self.portfolio = FakePortfolioRepo()


# =============================================================================
# LLM, dispatcher, notifier
# =============================================================================

def text_response(text: str, tokens: int = 10) -> LLMResponse:
    return LLMResponse(
        content=text,
        stop_reason=StopReason.END_TURN,
        usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
        model="fake-model",
    )


def tool_response(*calls, text: str = "", tokens: int = 10) -> LLMResponse:
    """``calls`` are ``(name, arguments)`` pairs."""
    return LLMResponse(
        content=text,
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
        stop_reason=StopReason.TOOL_USE,
        usage=Usage(prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens),
        model="fake-model",
    )


class ProviderError(Exception):
    """Exception carrying an HTTP status, like the ones litellm raises."""

    def __init__(self, status_code: int, message: str = "provider error"):
        super().__init__(f"{status_code} {message}")
        self.status_code = status_code


class ScriptedLLMClient(BaseLLMClient):
    """Replays responses in order; Exception items are raised instead."""

    provider = "fake"

    def __init__(self, responses=None, model: str = "fake-model"):
        super().__init__(LLMConfig(model=model))
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def _call_api(self, messages, tools=None, **kwargs) -> LLMResponse:
        self.calls.append({"messages": messages, "tools": tools, **kwargs})
        if not self.responses:
            return text_response("Done.")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class RecordingDispatcher(ToolDispatcher):

    def __init__(self, results: Optional[Dict[str, Any]] = None, known=None):
        self.results = dict(results or {})
        self.known = known
        self.calls: List[tuple] = []

    async def execute(self, tool_name, params, user_id):
        self.calls.append((tool_name, params, user_id))
        if self.known is not None and tool_name not in self.known:
            return unknown_tool_result(tool_name)
        return normalize_result(self.results.get(tool_name, {"success": True, "data": {"tool": tool_name}}))

    @property
    def called(self) -> List[str]:
        return [c[0] for c in self.calls]


class FakeNotifier:

    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: List[Dict[str, Any]] = []

    async def send(self, user_id, notification_type, title, body, data=None) -> bool:
        self.sent.append({"user_id": user_id, "type": notification_type, "title": title, "body": body, "data": data})
        return self.ok


class FakeRunner:
    """Stands in for DirectiveRunner; records directives and returns canned results."""

    def __init__(self, response: str = "Reviewed and handled.", errors: Optional[Dict[str, Exception]] = None):
        self.response = response
        self.errors = dict(errors or {})
        self.calls: List[Dict[str, Any]] = []

    async def run(self, owner, directive, source_tag, routing, event_type, description, **kwargs) -> LoopResult:
        self.calls.append({
            "user_id": owner.user_id, "directive": directive, "source_tag": source_tag,
            "tier": routing.tier, "event_type": event_type, **kwargs,
        })
        error = self.errors.get(source_tag)
        if error is not None:
            raise error
        return LoopResult(response=self.response, turns=1, token_usage=TokenUsage(10, 5), model="fake-model")


def make_gateway(*responses, client: Optional[ScriptedLLMClient] = None) -> LLMGateway:
    client = client or ScriptedLLMClient(responses)

    async def _no_sleep(_delay):
        return None

    return LLMGateway({ModelTier.STRONG: client, ModelTier.FAST: client}, sleep=_no_sleep)


def gate_context(
    preset: AutonomyPreset = AutonomyPreset.BALANCED,
    tier: SubscriptionTier = SubscriptionTier.HANDS_OFF,
    event_source: Optional[str] = "chat",
    overrides: Optional[Dict[str, Any]] = None,
    user_id: str = "owner-1",
) -> GateContext:
    return GateContext(
        user_id=user_id,
        settings=AutonomySettings(user_id=user_id, preset=preset, category_overrides=dict(overrides or {})),
        tier=tier,
        event_source=event_source,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def background():
    return BackgroundTasks()


@pytest.fixture
def gate(registry, store, dispatcher, background):
    return AutonomyGate(registry, store, dispatcher, background=background)
