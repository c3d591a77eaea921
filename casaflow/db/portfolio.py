"""
Read-only views over the product tables (properties, tenancies, arrears,
maintenance, compliance, payments, inspections).

These tables belong to the property-management product; the engine only
reads them to build review prompts and to run the proactive scanners.
"""

import logging
from typing import Any, Dict, List, Optional

from ..batch.models import PropertySnapshot
from .repository import Repository, row_to_dict

logger = logging.getLogger(__name__)

_OPEN_MAINTENANCE = "status NOT IN ('completed', 'cancelled')"


class PortfolioRepository(Repository):
    TABLE_NAME = "properties"

    async def owners(self, user_id: Optional[str] = None) -> List[str]:
        """Distinct owners with at least one active property."""
        if user_id:
            rows = await self.db.fetch(
                "SELECT DISTINCT owner_id FROM properties "
                "WHERE deleted_at IS NULL AND status = 'active' AND owner_id = $1",
                user_id,
            )
        else:
            rows = await self.db.fetch(
                "SELECT DISTINCT owner_id FROM properties WHERE deleted_at IS NULL AND status = 'active'"
            )
        return [str(r["owner_id"]) for r in rows]

    async def properties_for_owner(
        self,
        user_id: str,
        property_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        if property_id:
            return await self._fetch_many(
                "owner_id = $1 AND id = $2 AND deleted_at IS NULL AND status = 'active'",
                (user_id, property_id), limit=limit,
            )
        return await self._fetch_many(
            "owner_id = $1 AND deleted_at IS NULL AND status = 'active'",
            (user_id,), order_by="created_at ASC", limit=limit,
        )

    async def property_snapshot(self, property_id: str, address: str = "") -> PropertySnapshot:
        arrears = await self.db.fetch(
            "SELECT a.id, a.total_overdue, a.days_overdue, a.escalation_level, a.tenancy_id "
            "FROM arrears_records a JOIN tenancies t ON t.id = a.tenancy_id "
            "WHERE t.property_id = $1 AND t.status = 'active' AND a.is_resolved = false",
            property_id,
        )
        maintenance = await self.db.fetch(
            f"SELECT id, title, urgency, status, created_at FROM maintenance_requests "
            f"WHERE property_id = $1 AND {_OPEN_MAINTENANCE} ORDER BY created_at ASC",
            property_id,
        )
        tenancies = await self.db.fetch(
            "SELECT id, lease_end_date, rent_amount, rent_frequency, status FROM tenancies "
            "WHERE property_id = $1 AND status = 'active'",
            property_id,
        )
        compliance = await self.db.fetch(
            "SELECT id, compliance_type, status, due_date FROM compliance_items "
            "WHERE property_id = $1 AND status <> 'completed' ORDER BY due_date ASC NULLS LAST",
            property_id,
        )
        payments = await self.db.fetch(
            "SELECT id, amount, status, created_at FROM payments "
            "WHERE property_id = $1 AND created_at >= NOW() - INTERVAL '7 days' "
            "ORDER BY created_at DESC",
            property_id,
        )
        inspection = await self.db.fetchrow(
            "SELECT id, inspection_type, completed_at FROM inspections "
            "WHERE property_id = $1 AND status IN ('completed', 'finalized') "
            "ORDER BY completed_at DESC NULLS LAST LIMIT 1",
            property_id,
        )
        return PropertySnapshot(
            property_id=property_id,
            address=address,
            arrears=[row_to_dict(r) for r in arrears],
            open_maintenance=[row_to_dict(r) for r in maintenance],
            tenancies=[row_to_dict(r) for r in tenancies],
            compliance=[row_to_dict(r) for r in compliance],
            recent_payments=[row_to_dict(r) for r in payments],
            last_inspection=row_to_dict(inspection) if inspection else None,
        )

    async def portfolio_summary(self, user_id: str) -> Dict[str, Any]:
        """Headline counts for a weekly or monthly review."""
        row = await self.db.fetchrow(
            "SELECT "
            "(SELECT COUNT(*) FROM properties p WHERE p.owner_id = $1 AND p.deleted_at IS NULL "
            " AND p.status = 'active') AS property_count, "
            "(SELECT COUNT(*) FROM tenancies t JOIN properties p ON p.id = t.property_id "
            " WHERE p.owner_id = $1 AND t.status = 'active') AS active_tenancies, "
            "(SELECT COUNT(*) FROM maintenance_requests m JOIN properties p ON p.id = m.property_id "
            f" WHERE p.owner_id = $1 AND m.{_OPEN_MAINTENANCE}) AS open_maintenance, "
            "(SELECT COALESCE(SUM(a.total_overdue), 0) FROM arrears_records a "
            " JOIN tenancies t ON t.id = a.tenancy_id JOIN properties p ON p.id = t.property_id "
            " WHERE p.owner_id = $1 AND a.is_resolved = false) AS arrears_total",
            user_id,
        )
        return dict(row) if row else {}

    # Proactive scanner queries

    async def leases_expiring(self, within_days: int = 60, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            "SELECT t.id AS tenancy_id, t.property_id, p.owner_id, t.lease_end_date, t.rent_amount, "
            "t.rent_frequency, (t.lease_end_date - CURRENT_DATE) AS days_remaining "
            "FROM tenancies t JOIN properties p ON p.id = t.property_id "
            "WHERE t.status = 'active' AND p.deleted_at IS NULL "
            "AND t.lease_end_date BETWEEN CURRENT_DATE AND CURRENT_DATE + $1::int"
        )
        return await self._scan(query, within_days, user_id)

    async def compliance_due(self, within_days: int = 14, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            "SELECT c.id AS compliance_id, c.property_id, p.owner_id, c.compliance_type, c.due_date, "
            "GREATEST(CURRENT_DATE - c.due_date, 0) AS days_overdue "
            "FROM compliance_items c JOIN properties p ON p.id = c.property_id "
            "WHERE c.status <> 'completed' AND p.deleted_at IS NULL "
            "AND c.due_date IS NOT NULL AND c.due_date <= CURRENT_DATE + $1::int"
        )
        return await self._scan(query, within_days, user_id)

    async def stalled_maintenance(self, stale_days: int = 7, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            "SELECT m.id AS request_id, m.property_id, p.owner_id, m.title, m.urgency, m.status, "
            "m.created_at, m.updated_at "
            "FROM maintenance_requests m JOIN properties p ON p.id = m.property_id "
            f"WHERE m.{_OPEN_MAINTENANCE} AND p.deleted_at IS NULL "
            "AND COALESCE(m.updated_at, m.created_at) < NOW() - make_interval(days => $1::int)"
        )
        return await self._scan(query, stale_days, user_id)

    async def vacant_properties(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = (
            "SELECT p.id AS property_id, p.owner_id, p.address_line_1, p.suburb "
            "FROM properties p WHERE p.deleted_at IS NULL AND p.status = 'active' "
            "AND NOT EXISTS (SELECT 1 FROM tenancies t WHERE t.property_id = p.id "
            "AND t.status IN ('active', 'pending'))"
        )
        if user_id:
            rows = await self.db.fetch(query + " AND p.owner_id = $1", user_id)
        else:
            rows = await self.db.fetch(query)
        return [row_to_dict(r) for r in rows]

    async def rent_review_due(self, months: int = 12, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Active tenancies with no rent increase in the last *months* months."""
        query = (
            "SELECT t.id AS tenancy_id, t.property_id, p.owner_id, t.rent_amount, t.rent_frequency, "
            "t.lease_start_date "
            "FROM tenancies t JOIN properties p ON p.id = t.property_id "
            "WHERE t.status = 'active' AND p.deleted_at IS NULL "
            "AND t.lease_start_date <= CURRENT_DATE - make_interval(months => $1::int) "
            "AND NOT EXISTS (SELECT 1 FROM rent_increases r WHERE r.tenancy_id = t.id "
            "AND r.effective_date > CURRENT_DATE - make_interval(months => $1::int))"
        )
        return await self._scan(query, months, user_id)

    async def _scan(self, query: str, window: int, user_id: Optional[str]) -> List[Dict[str, Any]]:
        if user_id:
            rows = await self.db.fetch(query + " AND p.owner_id = $2", window, user_id)
        else:
            rows = await self.db.fetch(query, window)
        return [row_to_dict(r) for r in rows]
