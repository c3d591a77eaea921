"""Tests for the batch review scheduler and review directives"""

from datetime import date, timedelta

import pytest

from conftest import (
    FakeNotifier,
    FakeRunner,
    RecordingDispatcher,
    ScriptedLLMClient,
    make_gateway,
    text_response,
    tool_response,
    utc,
)

from casaflow.batch import PropertySnapshot, build_daily_review, build_monthly_review, build_weekly_review
from casaflow.batch.scanners import ProactiveScanner
from casaflow.batch.scheduler import BatchReviewScheduler
from casaflow.gate import AutonomyGate, AutonomyPreset
from casaflow.llm import ModelTier
from casaflow.orchestrator.loop import AgenticLoop
from casaflow.orchestrator.runner import DirectiveRunner
from casaflow.runtime import RunSummary, RuntimeBudget
from casaflow.workflows.engine import WorkflowEngine

NOW = utc(2026, 3, 2, 9, 0)
TODAY = date(2026, 3, 2)

LONG_SUMMARY = "Rents are on track, one compliance item needs booking this week."


def _properties(*ids):
    return [{"id": pid, "address_line_1": f"{n} Elm St", "suburb": "Carlton"} for n, pid in enumerate(ids, 1)]


def _scheduler(store, runner, notifier=None, with_scanner=False):
    workflows = WorkflowEngine(store, runner, clock=lambda: NOW)
    scanner = ProactiveScanner(store, workflows) if with_scanner else None
    return BatchReviewScheduler(store, runner, workflows, scanner=scanner, notifier=notifier), workflows


# =========================================================================
# Daily
# =========================================================================


class TestDaily:

    @pytest.mark.asyncio
    async def test_reviews_each_property(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1", "p2")}
        runner = FakeRunner()
        scheduler, _ = _scheduler(store, runner)
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget())

        assert summary.processed == 2
        assert sorted(c["property_id"] for c in runner.calls) == ["p1", "p2"]
        call = runner.calls[0]
        assert call["source_tag"] == "heartbeat_daily"
        assert call["event_type"] == "property_review"
        assert call["tier"] == ModelTier.FAST
        assert call["context_snapshot"]["property_address"].endswith("Elm St, Carlton")
        assert call["directive"].startswith("Daily property review for property")

    @pytest.mark.asyncio
    async def test_max_properties(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1", "p2", "p3")}
        runner = FakeRunner()
        scheduler, _ = _scheduler(store, runner)
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget(), max_properties=1)

        assert summary.processed == 1
        assert len(runner.calls) == 1

    @pytest.mark.asyncio
    async def test_single_property(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1", "p2")}
        runner = FakeRunner()
        scheduler, _ = _scheduler(store, runner)

        await scheduler.run("daily", RunSummary(mode="daily"), RuntimeBudget(), property_id="p2")

        assert [c["property_id"] for c in runner.calls] == ["p2"]

    @pytest.mark.asyncio
    async def test_property_failure_is_isolated(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1", "p2")}
        original = store.portfolio.property_snapshot

        async def flaky_snapshot(property_id, address=""):
            if property_id == "p1":
                raise RuntimeError("snapshot query failed")
            return await original(property_id, address)

        store.portfolio.property_snapshot = flaky_snapshot
        runner = FakeRunner()
        scheduler, _ = _scheduler(store, runner)
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget())

        assert summary.errors == ["Property p1: snapshot query failed"]
        assert [c["property_id"] for c in runner.calls] == ["p2"]

    @pytest.mark.asyncio
    async def test_scanner_runs_first_and_errors_are_reported(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        store.portfolio.failing_scans = {"leases"}
        store.portfolio.rent_reviews = [{"owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1"}]
        scheduler, _ = _scheduler(store, FakeRunner(), with_scanner=True)
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget())

        assert summary.errors == ["Scanner lease_expiry: leases query failed"]
        assert [e.event_type for e in store.events.rows.values()] == ["rent_review_due"]

    @pytest.mark.asyncio
    async def test_due_workflows_advanced_after_review(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        runner = FakeRunner()
        scheduler, workflows = _scheduler(store, runner)
        workflow = await workflows.create_workflow("owner-1", "lease_renewal", tenancy_id="t1")
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget())

        assert runner.calls[-1]["source_tag"] == "workflow_lease_renewal"
        assert workflow.current_step == 1
        assert summary.workflows_advanced == 1

    @pytest.mark.asyncio
    async def test_owner_without_properties_skipped(self, store):
        store.portfolio.owner_properties = {"owner-1": [], "owner-2": _properties("p9")}
        runner = FakeRunner()
        scheduler, _ = _scheduler(store, runner)

        await scheduler.run("daily", RunSummary(mode="daily"), RuntimeBudget())

        assert [c["user_id"] for c in runner.calls] == ["owner-2"]


# =========================================================================
# Daily review through the agent loop
# =========================================================================


class TestDailyWithAgent:

    @pytest.mark.asyncio
    async def test_expiring_lease_gets_rent_analysis(self, store, registry, background):
        lease_end = date.today() + timedelta(days=45)
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        store.portfolio.snapshots["p1"] = PropertySnapshot(
            property_id="p1",
            address="1 Elm St, Carlton",
            tenancies=[{"lease_end_date": lease_end.isoformat(), "rent_amount": 600, "rent_frequency": "weekly"}],
        )
        client = ScriptedLLMClient([
            tool_response(("analyze_rent", {"property_id": "p1"})),
            text_response("Rent analysis done; renewal terms sent to the owner."),
        ])
        dispatcher = RecordingDispatcher()
        gate = AutonomyGate(registry, store, dispatcher, background=background)
        runner = DirectiveRunner(store, AgenticLoop(make_gateway(client=client), gate), registry)
        scheduler, _ = _scheduler(store, runner)
        summary = RunSummary(mode="daily")

        await scheduler.run("daily", summary, RuntimeBudget())

        directive = client.calls[0]["messages"][-1]["content"]
        assert "Lease ending in 45 days" in directive
        assert "ACTION NEEDED" in directive
        assert dispatcher.calls == [("analyze_rent", {"property_id": "p1"}, "owner-1")]
        assert summary.processed == 1
        assert summary.actions_taken == 1
        assert summary.errors == []


# =========================================================================
# Weekly / monthly
# =========================================================================


class TestPortfolioReviews:

    @pytest.mark.asyncio
    async def test_weekly_sends_summary(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1", "p2")}
        runner = FakeRunner(response=LONG_SUMMARY)
        notifier = FakeNotifier()
        scheduler, _ = _scheduler(store, runner, notifier=notifier)
        summary = RunSummary(mode="weekly")

        await scheduler.run("weekly", summary, RuntimeBudget())

        assert len(runner.calls) == 1
        assert runner.calls[0]["source_tag"] == "heartbeat_weekly"
        assert runner.calls[0]["tier"] == ModelTier.STRONG
        assert "2 properties" in runner.calls[0]["directive"]
        assert summary.processed == 2
        assert notifier.sent[0]["type"] == "weekly_summary"
        assert notifier.sent[0]["title"] == "Weekly Property Summary"
        assert notifier.sent[0]["body"] == LONG_SUMMARY
        assert summary.notifications_sent == 1

    @pytest.mark.asyncio
    async def test_monthly_digest(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        notifier = FakeNotifier()
        scheduler, _ = _scheduler(store, FakeRunner(response=LONG_SUMMARY), notifier=notifier)

        await scheduler.run("monthly", RunSummary(mode="monthly"), RuntimeBudget())

        assert notifier.sent[0]["type"] == "monthly_digest"
        assert notifier.sent[0]["title"] == "Monthly Portfolio Report"

    @pytest.mark.asyncio
    async def test_short_response_not_sent(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        notifier = FakeNotifier()
        scheduler, _ = _scheduler(store, FakeRunner(response="OK"), notifier=notifier)

        await scheduler.run("weekly", RunSummary(mode="weekly"), RuntimeBudget())

        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_failed_delivery_not_counted(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        scheduler, _ = _scheduler(store, FakeRunner(response=LONG_SUMMARY), notifier=FakeNotifier(ok=False))
        summary = RunSummary(mode="weekly")

        await scheduler.run("weekly", summary, RuntimeBudget())

        assert summary.notifications_sent == 0

    @pytest.mark.asyncio
    async def test_owner_failure_recorded(self, store):
        store.portfolio.owner_properties = {"owner-1": _properties("p1")}
        runner = FakeRunner(errors={"heartbeat_weekly": RuntimeError("LLM down")})
        scheduler, _ = _scheduler(store, runner)
        summary = RunSummary(mode="weekly")

        await scheduler.run("weekly", summary, RuntimeBudget())

        assert summary.errors == ["Owner owner-1: LLM down"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["instant", "hourly"])
    async def test_rejects_non_batch_modes(self, store, mode):
        scheduler, _ = _scheduler(store, FakeRunner())
        with pytest.raises(ValueError):
            await scheduler.run(mode, RunSummary(mode=mode), RuntimeBudget())


# =========================================================================
# Directives
# =========================================================================


class TestReviewDirectives:

    def _snapshot(self):
        return PropertySnapshot(
            property_id="p1",
            address="1 Elm St",
            arrears=[{"total_overdue": 850, "days_overdue": 9, "escalation_level": "formal"}],
            open_maintenance=[{"title": "Leaking tap", "urgency": "routine", "status": "submitted"}],
            tenancies=[
                {"lease_end_date": (TODAY + timedelta(days=45)).isoformat(), "rent_amount": 600, "rent_frequency": "weekly"},
                {"lease_end_date": TODAY + timedelta(days=80), "rent_amount": 550, "rent_frequency": "weekly"},
                {"lease_end_date": TODAY + timedelta(days=200), "rent_amount": 500, "rent_frequency": "weekly"},
            ],
            compliance=[{"compliance_type": "smoke_alarm", "status": "due", "due_date": None}],
            recent_payments=[{"amount": 600}, {"amount": "550.5"}],
            last_inspection={"inspection_type": "routine", "completed_at": utc(2025, 8, 1)},
        )

    def test_daily_sections(self):
        text = build_daily_review(self._snapshot(), AutonomyPreset.BALANCED, today=TODAY)
        assert "ARREARS (1 active):" in text
        assert "$850 overdue, 9 days, level: formal" in text
        assert "\"Leaking tap\" [routine]" in text
        assert "Lease ending in 45 days" in text
        assert "Lease ending in 80 days" in text
        assert "Lease ending in 200 days" not in text
        assert text.count("ACTION NEEDED") == 1
        assert "start a renewal workflow (e.g. workflow_lease_renewal)" in text
        assert "smoke_alarm: status due, due no date set" in text
        assert "2 payments" in text
        assert "Total: $1150.50" in text
        assert "213 days ago" in text
        assert "Overdue" in text
        assert "Take any actions" in text

    def test_daily_quiet_property(self):
        text = build_daily_review(PropertySnapshot(property_id="p2"), AutonomyPreset.HANDS_OFF, today=TODAY)
        assert "ARREARS: None" in text
        assert "MAINTENANCE: No open requests." in text
        assert "LEASE EXPIRIES" not in text
        assert "No completed inspection on record" in text

    def test_cautious_preset_asks_for_approval(self):
        text = build_daily_review(PropertySnapshot(property_id="p2"), AutonomyPreset.CAUTIOUS, today=TODAY)
        assert "cautious preset" in text
        assert "Take any actions" not in text

    def test_portfolio_directives(self):
        weekly = build_weekly_review(4, {"active_tenancies": 3, "open_maintenance": 1, "arrears_total": 1200})
        assert "4 properties" in weekly
        assert "Arrears outstanding: $1200" in weekly
        assert "PORTFOLIO SNAPSHOT" not in build_monthly_review(2)
