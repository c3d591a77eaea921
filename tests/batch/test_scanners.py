"""Tests for casaflow.batch.scanners.ProactiveScanner"""

from datetime import date

import pytest

from conftest import FakeRunner, utc

from casaflow.batch.scanners import ProactiveScanner
from casaflow.events import EventPriority
from casaflow.workflows.engine import WorkflowEngine

NOW = utc(2026, 3, 2, 9, 0)


@pytest.fixture
def scanner(store):
    return ProactiveScanner(store, WorkflowEngine(store, FakeRunner(), clock=lambda: NOW))


def _events(store, event_type=None):
    return [e for e in store.events.rows.values() if event_type is None or e.event_type == event_type]


def _workflows(store, workflow_type=None):
    return [w for w in store.workflows.rows.values() if workflow_type is None or w.workflow_type == workflow_type]


class TestScanners:

    @pytest.mark.asyncio
    async def test_expiring_lease(self, scanner, store):
        store.portfolio.expiring = [{
            "owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1",
            "lease_end_date": date(2026, 4, 15), "days_remaining": 44,
        }]

        report = await scanner.run()

        assert report.events_created == 1
        assert report.workflows_created == 1
        event = _events(store, "lease_expiring_soon")[0]
        assert event.priority == EventPriority.HIGH
        assert event.user_id == "owner-1"
        assert event.property_id == "p1"
        assert event.payload["lease_end_date"] == "2026-04-15"
        assert "owner_id" not in event.payload
        workflow = _workflows(store, "lease_renewal")[0]
        assert workflow.tenancy_id == "t1"
        assert workflow.metadata["started_by"] == "scanner"

    @pytest.mark.asyncio
    async def test_compliance_priority(self, scanner, store):
        store.portfolio.compliance = [
            {"owner_id": "owner-1", "compliance_id": "c1", "property_id": "p1", "days_overdue": 3},
            {"owner_id": "owner-1", "compliance_id": "c2", "property_id": "p2", "days_overdue": -5},
        ]

        await scanner.run()

        priorities = {e.payload["compliance_id"]: e.priority for e in _events(store, "compliance_overdue")}
        assert priorities == {"c1": EventPriority.HIGH, "c2": EventPriority.NORMAL}
        assert {w.property_id for w in _workflows(store, "compliance_renewal")} == {"p1", "p2"}

    @pytest.mark.asyncio
    async def test_stalled_maintenance_and_rent_review(self, scanner, store):
        store.portfolio.stalled = [{"owner_id": "owner-1", "request_id": "m1", "property_id": "p1", "title": "Tap"}]
        store.portfolio.rent_reviews = [{"owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1"}]

        report = await scanner.run()

        assert report.events_created == 2
        assert report.workflows_created == 0
        stalled = _events(store, "maintenance_stalled")[0]
        assert stalled.payload["days_stalled"] == 7
        assert _events(store, "rent_review_due")[0].priority == EventPriority.LOW

    @pytest.mark.asyncio
    async def test_vacancy_starts_listing(self, scanner, store):
        store.portfolio.vacant = [{
            "owner_id": "owner-1", "property_id": "p3", "address_line_1": "3 Oak Ave", "suburb": "Fitzroy",
        }]

        await scanner.run()

        assert _events(store, "property_vacant")[0].payload["address"] == "3 Oak Ave, Fitzroy"
        assert _workflows(store, "listing_lifecycle")[0].property_id == "p3"

    @pytest.mark.asyncio
    async def test_second_scan_is_idempotent(self, scanner, store):
        store.portfolio.expiring = [{"owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1"}]
        store.portfolio.vacant = [{"owner_id": "owner-1", "property_id": "p3"}]

        await scanner.run()
        report = await scanner.run()

        assert report.events_created == 0
        assert report.workflows_created == 0
        assert len(_events(store)) == 2
        assert len(_workflows(store)) == 2

    @pytest.mark.asyncio
    async def test_processed_event_can_be_raised_again(self, scanner, store):
        store.portfolio.rent_reviews = [{"owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1"}]
        await scanner.run()
        first = _events(store)[0]
        await store.events.mark_processed(first.id)

        report = await scanner.run()

        assert report.events_created == 1

    @pytest.mark.asyncio
    async def test_user_filter(self, scanner, store):
        store.portfolio.rent_reviews = [
            {"owner_id": "owner-1", "tenancy_id": "t1", "property_id": "p1"},
            {"owner_id": "owner-2", "tenancy_id": "t2", "property_id": "p2"},
        ]
        await scanner.run("owner-2")
        assert [e.user_id for e in _events(store)] == ["owner-2"]

    @pytest.mark.asyncio
    async def test_failing_scan_does_not_stop_others(self, scanner, store):
        store.portfolio.failing_scans = {"compliance", "vacant"}
        store.portfolio.stalled = [{"owner_id": "owner-1", "request_id": "m1", "property_id": "p1"}]

        report = await scanner.run()

        assert report.errors == [
            "Scanner compliance: compliance query failed",
            "Scanner vacancy: vacant query failed",
        ]
        assert report.events_created == 1
