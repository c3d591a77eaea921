"""
Proactive scanners.

Before the daily review, the portfolio is scanned for situations nobody has
reported yet (expiring leases, due compliance, stalled maintenance, vacant
properties, overdue rent reviews). Each finding becomes a queued event and,
where a multi-step process applies, a workflow. Findings already queued or
already covered by an active workflow are skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..events.models import Event, EventPriority
from ..workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    events_created: int = 0
    workflows_created: int = 0
    errors: List[str] = field(default_factory=list)


def _jsonable(row: Dict[str, Any]) -> Dict[str, Any]:
    payload = {}
    for key, value in row.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            payload[key] = value
        else:
            payload[key] = str(value)
    return payload


class ProactiveScanner:

    def __init__(
        self,
        store,
        workflows: WorkflowEngine,
        lease_window_days: int = 60,
        compliance_window_days: int = 14,
        stalled_days: int = 7,
        rent_review_months: int = 12,
    ):
        self._store = store
        self._workflows = workflows
        self.lease_window_days = lease_window_days
        self.compliance_window_days = compliance_window_days
        self.stalled_days = stalled_days
        self.rent_review_months = rent_review_months

    async def run(self, user_id: Optional[str] = None) -> ScanReport:
        report = ScanReport()
        scans = (
            ("lease_expiry", self._scan_leases),
            ("compliance", self._scan_compliance),
            ("stalled_maintenance", self._scan_stalled_maintenance),
            ("vacancy", self._scan_vacancies),
            ("rent_review", self._scan_rent_reviews),
        )
        for name, scan in scans:
            try:
                await scan(report, user_id)
            except Exception as e:
                logger.error(f"[Batch] {name} scanner failed: {e}")
                report.errors.append(f"Scanner {name}: {e}")
        logger.info(
            f"[Batch] scanners queued {report.events_created} event(s), "
            f"started {report.workflows_created} workflow(s)"
        )
        return report

    async def _scan_leases(self, report: ScanReport, user_id: Optional[str]) -> None:
        rows = await self._store.portfolio.leases_expiring(self.lease_window_days, user_id=user_id)
        for row in rows:
            await self._emit(report, "lease_expiring_soon", row, "tenancy_id", EventPriority.HIGH)
            await self._start_workflow(report, "lease_renewal", row, by_tenancy=True)

    async def _scan_compliance(self, report: ScanReport, user_id: Optional[str]) -> None:
        rows = await self._store.portfolio.compliance_due(self.compliance_window_days, user_id=user_id)
        for row in rows:
            overdue = int(row.get("days_overdue") or 0) > 0
            priority = EventPriority.HIGH if overdue else EventPriority.NORMAL
            await self._emit(report, "compliance_overdue", row, "compliance_id", priority)
            await self._start_workflow(report, "compliance_renewal", row, by_tenancy=False)

    async def _scan_stalled_maintenance(self, report: ScanReport, user_id: Optional[str]) -> None:
        rows = await self._store.portfolio.stalled_maintenance(self.stalled_days, user_id=user_id)
        for row in rows:
            row = {**row, "days_stalled": self.stalled_days}
            await self._emit(report, "maintenance_stalled", row, "request_id", EventPriority.NORMAL)

    async def _scan_vacancies(self, report: ScanReport, user_id: Optional[str]) -> None:
        rows = await self._store.portfolio.vacant_properties(user_id=user_id)
        for row in rows:
            address = ", ".join(str(v) for v in (row.get("address_line_1"), row.get("suburb")) if v)
            row = {**row, "address": address}
            await self._emit(report, "property_vacant", row, "property_id", EventPriority.NORMAL)
            await self._start_workflow(report, "listing_lifecycle", row, by_tenancy=False)

    async def _scan_rent_reviews(self, report: ScanReport, user_id: Optional[str]) -> None:
        rows = await self._store.portfolio.rent_review_due(self.rent_review_months, user_id=user_id)
        for row in rows:
            await self._emit(report, "rent_review_due", row, "tenancy_id", EventPriority.LOW)

    async def _emit(
        self,
        report: ScanReport,
        event_type: str,
        row: Dict[str, Any],
        entity_key: str,
        priority: EventPriority,
    ) -> None:
        owner_id = str(row["owner_id"])
        entity_id = str(row[entity_key])
        if await self._store.events.has_unprocessed(event_type, owner_id, entity_key, entity_id):
            return
        payload = _jsonable({k: v for k, v in row.items() if k != "owner_id"})
        property_id = row.get("property_id")
        await self._store.events.enqueue(Event(
            event_type=event_type,
            user_id=owner_id,
            payload=payload,
            priority=priority,
            property_id=str(property_id) if property_id else None,
        ))
        report.events_created += 1

    async def _start_workflow(self, report: ScanReport, workflow_type: str, row: Dict[str, Any], by_tenancy: bool) -> None:
        owner_id = str(row["owner_id"])
        property_id = str(row["property_id"]) if row.get("property_id") else None
        tenancy_id = str(row["tenancy_id"]) if by_tenancy and row.get("tenancy_id") else None
        if await self._store.workflows.has_active(workflow_type, owner_id, tenancy_id=tenancy_id, property_id=property_id):
            return
        await self._workflows.create_workflow(
            owner_id,
            workflow_type,
            property_id=property_id,
            tenancy_id=tenancy_id,
            metadata={"started_by": "scanner", **_jsonable({k: v for k, v in row.items() if k != "owner_id"})},
        )
        report.workflows_created += 1
