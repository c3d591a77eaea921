"""Per-property snapshot gathered before a daily review."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from dateutil import parser

INSPECTION_STALE_DAYS = 180
LEASE_LOOKAHEAD_DAYS = 90
LEASE_ACTION_DAYS = 60


@dataclass
class PropertySnapshot:
    """Live aggregates for one property, gathered before a daily review."""

    property_id: str
    address: str = ""
    arrears: List[Dict[str, Any]] = field(default_factory=list)
    open_maintenance: List[Dict[str, Any]] = field(default_factory=list)
    tenancies: List[Dict[str, Any]] = field(default_factory=list)
    compliance: List[Dict[str, Any]] = field(default_factory=list)
    recent_payments: List[Dict[str, Any]] = field(default_factory=list)
    last_inspection: Optional[Dict[str, Any]] = None

    @property
    def payments_total(self) -> float:
        return sum(float(p.get("amount") or 0) for p in self.recent_payments)

    def expiring_leases(self, today: date, within_days: int = LEASE_LOOKAHEAD_DAYS) -> List[Dict[str, Any]]:
        """Active tenancies ending within *within_days*, each with ``days_left``."""
        expiring = []
        for tenancy in self.tenancies:
            end = as_date(tenancy.get("lease_end_date"))
            if end is None:
                continue
            days_left = (end - today).days
            if days_left <= within_days:
                expiring.append({**tenancy, "days_left": days_left})
        return expiring


def as_date(value: Any) -> Optional[date]:
    """Coerce a DATE/TIMESTAMP column or an ISO string to a date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None
