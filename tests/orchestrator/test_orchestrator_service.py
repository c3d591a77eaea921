"""Tests for casaflow.orchestrator.service.OrchestratorService"""

import pytest

from conftest import FakeRunner

from casaflow.batch.scheduler import BatchReviewScheduler
from casaflow.events import Event, EventPriority
from casaflow.events.processor import EventQueueProcessor
from casaflow.orchestrator.service import OrchestratorService
from casaflow.workflows.engine import WorkflowEngine


class RecordingAudit:

    def __init__(self):
        self.summaries = []

    def log_run_summary(self, mode, summary):
        self.summaries.append((mode, summary))


class ExplodingBatch:

    async def run(self, *args, **kwargs):
        raise RuntimeError("portfolio query failed")


def _service(store, runner, batch=None, audit=None):
    workflows = WorkflowEngine(store, runner)
    events = EventQueueProcessor(store, runner)
    batch = batch or BatchReviewScheduler(store, runner, workflows)
    return OrchestratorService(events, workflows, batch, audit=audit or RecordingAudit())


class TestOrchestratorService:

    @pytest.mark.asyncio
    async def test_instant_drains_events_then_workflows(self, store):
        runner = FakeRunner()
        audit = RecordingAudit()
        service = _service(store, runner, audit=audit)
        await store.events.enqueue(Event("payment_failed", "owner-1", {"amount": 500}, EventPriority.INSTANT))
        await WorkflowEngine(store, runner).create_workflow("owner-1", "arrears_escalation", tenancy_id="t1")

        summary = await service.run("instant")

        assert [c["source_tag"] for c in runner.calls] == ["trigger_payment_failed", "workflow_arrears_escalation"]
        assert summary.mode == "instant"
        assert summary.events_processed == 1
        assert summary.workflows_advanced == 1
        assert summary.total_tokens == 30
        assert summary.duration_ms >= 0
        assert audit.summaries[0][0] == "instant"
        assert audit.summaries[0][1]["events_processed"] == 1

    @pytest.mark.asyncio
    async def test_instant_for_one_owner(self, store):
        runner = FakeRunner()
        await store.events.enqueue(Event("payment_completed", "owner-1"))
        await store.events.enqueue(Event("payment_completed", "owner-2"))

        summary = await _service(store, runner).run("instant", user_id="owner-2")

        assert [c["user_id"] for c in runner.calls] == ["owner-2"]
        assert summary.events_processed == 1

    @pytest.mark.asyncio
    async def test_daily_delegates_to_batch(self, store):
        store.portfolio.owner_properties = {"owner-1": [{"id": "p1", "address_line_1": "1 Elm St"}]}
        runner = FakeRunner()

        summary = await _service(store, runner).run("daily", max_properties=5)

        assert [c["source_tag"] for c in runner.calls] == ["heartbeat_daily"]
        assert summary.processed == 1

    @pytest.mark.asyncio
    async def test_unknown_mode(self, store):
        with pytest.raises(ValueError, match="Unknown orchestrator mode"):
            await _service(store, FakeRunner()).run("hourly")

    @pytest.mark.asyncio
    async def test_summary_logged_on_failure(self, store):
        audit = RecordingAudit()
        service = _service(store, FakeRunner(), batch=ExplodingBatch(), audit=audit)

        with pytest.raises(RuntimeError):
            await service.run("weekly")

        assert audit.summaries[0][0] == "weekly"

    @pytest.mark.asyncio
    async def test_summary_shape(self, store):
        summary = await _service(store, FakeRunner()).run("instant")
        assert set(summary.to_dict()) == {
            "mode", "processed", "events_processed", "workflows_advanced", "actions_taken",
            "notifications_sent", "errors", "duration_ms", "total_tokens",
        }
