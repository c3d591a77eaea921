"""Review directives for the daily, weekly and monthly batch runs."""

from datetime import date
from typing import Any, Dict, Optional

from ..gate.autonomy import AutonomyPreset
from .models import INSPECTION_STALE_DAYS, LEASE_ACTION_DAYS, PropertySnapshot, as_date

_CAUTIOUS_INSTRUCTIONS = (
    "The owner uses the cautious preset. Do not act on your own: for every issue, "
    "call the appropriate tool so a pending action is created for the owner to approve."
)
_ACTIVE_INSTRUCTIONS = (
    "Take any actions that are appropriate within your autonomy level immediately. "
    "If there are issues needing owner attention, create pending actions."
)


def _money(value: Any) -> str:
    try:
        return f"{float(value):.2f}".rstrip("0").rstrip(".")
    except (TypeError, ValueError):
        return str(value)


def build_daily_review(snapshot: PropertySnapshot, preset: AutonomyPreset, today: Optional[date] = None) -> str:
    today = today or date.today()
    lines = [f"Daily property review for property {snapshot.property_id}:", ""]

    if snapshot.arrears:
        lines.append(f"ARREARS ({len(snapshot.arrears)} active):")
        for a in snapshot.arrears:
            lines.append(
                f"  - ${_money(a.get('total_overdue'))} overdue, {a.get('days_overdue')} days, "
                f"level: {a.get('escalation_level')}"
            )
    else:
        lines.append("ARREARS: None - all rent is current.")
    lines.append("")

    if snapshot.open_maintenance:
        lines.append(f"OPEN MAINTENANCE ({len(snapshot.open_maintenance)}):")
        for m in snapshot.open_maintenance:
            lines.append(f"  - \"{m.get('title')}\" [{m.get('urgency')}] status: {m.get('status')}")
    else:
        lines.append("MAINTENANCE: No open requests.")
    lines.append("")

    expiring = snapshot.expiring_leases(today)
    if expiring:
        lines.append("LEASE EXPIRIES (within 90 days):")
        for t in expiring:
            lines.append(
                f"  - Lease ending in {t['days_left']} days ({t.get('lease_end_date')}), "
                f"rent: ${_money(t.get('rent_amount'))}/{t.get('rent_frequency')}"
            )
            if t["days_left"] <= LEASE_ACTION_DAYS:
                lines.append(
                    "    ACTION NEEDED: run a renewal analysis now with analyze_rent, then start a renewal "
                    "workflow (e.g. workflow_lease_renewal) and recommend terms to the owner."
                )
        lines.append("")

    if snapshot.compliance:
        lines.append("COMPLIANCE ITEMS DUE:")
        for c in snapshot.compliance:
            lines.append(
                f"  - {c.get('compliance_type')}: status {c.get('status')}, "
                f"due {c.get('due_date') or 'no date set'}"
            )
        lines.append("")

    lines.append(f"RECENT PAYMENTS (7 days): {len(snapshot.recent_payments)} payments")
    if snapshot.recent_payments:
        lines.append(f"  Total: ${snapshot.payments_total:.2f}")
    lines.append("")

    lines.append(_inspection_line(snapshot, today))
    lines.append("")

    instructions = _CAUTIOUS_INSTRUCTIONS if preset == AutonomyPreset.CAUTIOUS else _ACTIVE_INSTRUCTIONS
    lines.append(f"Please review this property's current state. {instructions} Focus on:")
    lines.extend([
        "1. Escalating any arrears that need it",
        "2. Following up on stalled maintenance requests",
        "3. Flagging upcoming lease expiries with renewal recommendations",
        "4. Checking overdue compliance items",
        "5. Identifying anything else that needs attention",
    ])
    return "\n".join(lines)


def _inspection_line(snapshot: PropertySnapshot, today: date) -> str:
    inspection = snapshot.last_inspection
    completed = as_date(inspection.get("completed_at")) if inspection else None
    if completed is None:
        return "INSPECTIONS: No completed inspection on record. Consider scheduling a routine inspection."
    days_since = (today - completed).days
    line = f"INSPECTIONS: Last {inspection.get('inspection_type') or 'routine'} inspection {days_since} days ago ({completed.isoformat()})."
    if days_since > INSPECTION_STALE_DAYS:
        line += f" Overdue: more than {INSPECTION_STALE_DAYS} days, schedule a routine inspection."
    return line


def _portfolio_lines(portfolio: Optional[Dict[str, Any]]) -> str:
    if not portfolio:
        return ""
    return (
        "\n\nPORTFOLIO SNAPSHOT:\n"
        f"  - Active tenancies: {portfolio.get('active_tenancies', 0)}\n"
        f"  - Open maintenance requests: {portfolio.get('open_maintenance', 0)}\n"
        f"  - Arrears outstanding: ${_money(portfolio.get('arrears_total', 0))}"
    )


def build_weekly_review(property_count: int, portfolio: Optional[Dict[str, Any]] = None) -> str:
    return f"""Weekly portfolio review. You have {property_count} properties to review. Please:
1. Check for market rent data and compare against current rents
2. Review overall property health scores
3. Analyse tenant retention and satisfaction
4. Flag any properties with declining performance
5. Check all compliance deadlines for the next 30 days
6. Generate a brief weekly summary with key metrics and any actions needed

Keep the summary concise and action-oriented.{_portfolio_lines(portfolio)}"""


def build_monthly_review(property_count: int, portfolio: Optional[Dict[str, Any]] = None) -> str:
    return f"""Monthly portfolio review and financial summary. You have {property_count} properties. Please:
1. Generate a full financial summary for the past month (income, expenses, net)
2. Review property health scores across the portfolio
3. Check all compliance deadlines for the next 90 days
4. Analyse tenant satisfaction and renewal probability for each tenancy
5. Review market data and rent positioning
6. Identify investment opportunities or concerns
7. Generate a monthly digest notification with key highlights

This is a comprehensive review. Be thorough but concise.{_portfolio_lines(portfolio)}"""
