"""Directive templates for queued domain events.

Each template turns an event payload into the instruction the agent runs
with. Unknown event types fall back to a JSON dump of the payload.
"""

import json
from typing import Any, Callable, Dict

from .models import Event

Payload = Dict[str, Any]


def _get(p: Payload, key: str, default: Any) -> Any:
    value = p.get(key)
    return default if value in (None, "") else value


def _payment_completed(p: Payload) -> str:
    return f"""A rent payment has been received:
- Amount: ${_get(p, 'amount', 0)}
- Property: {_get(p, 'property_address', '[will be resolved from property_id]')}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}
- Payment type: {_get(p, 'payment_type', 'rent')}

Please:
1. Verify this payment matches expected rent
2. Check if this resolves any arrears
3. Send appropriate confirmation/receipt to the tenant
4. Update any relevant financial records"""


def _payment_failed(p: Payload) -> str:
    return f"""A rent payment has failed:
- Amount: ${_get(p, 'amount', 0)}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}
- Failure reason: {_get(p, 'failure_reason', 'unknown')}
- Attempt number: {_get(p, 'attempt_number', 1)}

Please:
1. Check the tenant's payment history
2. If first failure, retry the payment
3. If repeated failure, notify the owner and suggest next steps
4. Log this event on the arrears record if applicable"""


def _maintenance_submitted(p: Payload) -> str:
    return f"""A new maintenance request has been submitted:
- Title: {_get(p, 'title', 'Untitled')}
- Urgency: {_get(p, 'urgency', 'routine')}
- Category: {_get(p, 'category', 'general')}
- Description: {_get(p, 'description', 'No description provided')}
- Reported by: {_get(p, 'reported_by', 'tenant')}

Please:
1. Acknowledge receipt to the tenant
2. Assess urgency and triage appropriately
3. If emergency, immediately search for available trades
4. Notify the owner with your assessment and recommended action"""


def _maintenance_emergency(p: Payload) -> str:
    return f"""EMERGENCY maintenance request submitted:
- Title: {_get(p, 'title', 'Untitled')}
- Category: {_get(p, 'category', 'general')}
- Description: {_get(p, 'description', 'No description provided')}

This is URGENT. Please:
1. Immediately acknowledge receipt to the tenant
2. Search for available emergency trades in the area
3. If an existing preferred trade is available, create a work order
4. Notify the owner immediately about the emergency
5. If after hours, note that emergency service rates may apply"""


def _maintenance_stalled(p: Payload) -> str:
    return f"""A maintenance request has stalled:
- Title: {_get(p, 'title', 'Untitled')}
- Urgency: {_get(p, 'urgency', 'routine')}
- Status: {_get(p, 'status', 'unknown')}
- Days without progress: {_get(p, 'days_stalled', 7)}

Please:
1. Check the request, its quotes and any work orders
2. Follow up with the assigned trade or find an alternative
3. Update the tenant on progress
4. Notify the owner if a decision is needed"""


def _tenancy_created(p: Payload) -> str:
    return f"""A new tenancy has been created:
- Lease start: {_get(p, 'lease_start_date', '[unknown]')}
- Lease end: {_get(p, 'lease_end_date', '[unknown]')}
- Rent: ${_get(p, 'rent_amount', 0)} {_get(p, 'rent_frequency', 'weekly')}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}

Please:
1. Create an onboarding workflow for this tenancy
2. Check all compliance items are in order for the property
3. Send a welcome notification to the tenant
4. Schedule an entry condition inspection if not already done"""


def _tenancy_terminated(p: Payload) -> str:
    return f"""A tenancy has been terminated:
- Termination type: {_get(p, 'termination_type', 'mutual')}
- Effective date: {_get(p, 'effective_date', '[unknown]')}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}

Please:
1. Schedule an exit inspection
2. Check for any outstanding rent or arrears
3. Begin the bond return process
4. Prepare to relist the property if appropriate
5. Notify the owner with a summary of final actions needed"""


def _inspection_finalized(p: Payload) -> str:
    return f"""An inspection has been finalized:
- Type: {_get(p, 'inspection_type', 'routine')}
- Overall condition: {_get(p, 'overall_condition', 'not assessed')}
- Issues found: {_get(p, 'issues_count', 'unknown')}

Please:
1. Review the inspection findings
2. Create maintenance requests for any issues found
3. Notify the owner with a summary
4. If exit inspection, compare with entry inspection for damage assessment"""


def _lease_expiring_soon(p: Payload) -> str:
    return f"""A lease is expiring soon:
- Days remaining: {_get(p, 'days_remaining', 0)}
- Lease end date: {_get(p, 'lease_end_date', '[unknown]')}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}
- Current rent: ${_get(p, 'rent_amount', 0)} {_get(p, 'rent_frequency', 'weekly')}

Please:
1. Analyse the current rent vs market rate
2. Check tenant satisfaction and payment history
3. Recommend whether to renew, adjust rent, or not renew
4. If renewal is recommended, draft the renewal terms
5. Notify the owner with your recommendation"""


def _arrears_escalation(p: Payload) -> str:
    return f"""Arrears escalation is needed:
- Days overdue: {_get(p, 'days_overdue', 0)}
- Amount overdue: ${_get(p, 'total_overdue', 0)}
- Current level: {_get(p, 'current_level', 'friendly')}
- Tenant: {_get(p, 'tenant_name', '[unknown]')}

Please:
1. Review the arrears history and any payment plans
2. Determine the appropriate next escalation step
3. Generate any required notices (e.g. breach notice)
4. Notify the owner of the escalation
5. Log all actions taken"""


def _compliance_overdue(p: Payload) -> str:
    return f"""A compliance item is overdue:
- Item: {_get(p, 'compliance_type', '[unknown]')}
- Due date: {_get(p, 'due_date', '[unknown]')}
- Days overdue: {_get(p, 'days_overdue', 0)}

Please:
1. Notify the owner immediately about the overdue compliance
2. Check state-specific requirements for this compliance item
3. Find available service providers if applicable
4. Create a task for the owner with deadline and consequences"""


def _application_received(p: Payload) -> str:
    return f"""A new rental application has been received:
- Applicant: {_get(p, 'applicant_name', '[unknown]')}
- Listing: {_get(p, 'listing_title', '[unknown]')}

Please:
1. Score and assess the application
2. Compare with other pending applications if any
3. Notify the owner with your assessment and recommendation"""


def _property_vacant(p: Payload) -> str:
    return f"""A property has no active tenancy:
- Property: {_get(p, 'address', '[will be resolved from property_id]')}

Please:
1. Check whether a listing already exists for the property
2. Suggest a rent price from comparable properties
3. Draft a listing for the owner to review
4. Notify the owner with your recommendation"""


def _rent_review_due(p: Payload) -> str:
    return f"""A rent review is due (no increase in 12 months):
- Current rent: ${_get(p, 'rent_amount', 0)} {_get(p, 'rent_frequency', 'weekly')}
- Lease start: {_get(p, 'lease_start_date', '[unknown]')}

Please:
1. Analyse the current rent against the market
2. Check the notice rules for a rent increase
3. Recommend whether to increase the rent and by how much
4. Notify the owner with your recommendation"""


EVENT_TEMPLATES: Dict[str, Callable[[Payload], str]] = {
    "payment_completed": _payment_completed,
    "payment_failed": _payment_failed,
    "maintenance_submitted": _maintenance_submitted,
    "maintenance_submitted_emergency": _maintenance_emergency,
    "maintenance_stalled": _maintenance_stalled,
    "tenancy_created": _tenancy_created,
    "tenancy_terminated": _tenancy_terminated,
    "inspection_finalized": _inspection_finalized,
    "lease_expiring_soon": _lease_expiring_soon,
    "arrears_escalation": _arrears_escalation,
    "compliance_overdue": _compliance_overdue,
    "application_received": _application_received,
    "property_vacant": _property_vacant,
    "rent_review_due": _rent_review_due,
}


def build_event_directive(event: Event) -> str:
    template = EVENT_TEMPLATES.get(event.event_type)
    if template is not None:
        return template(event.payload or {})
    return (
        f"Event: {event.event_type}\n"
        f"Payload: {json.dumps(event.payload or {}, indent=2, default=str)}\n\n"
        "Please review this event and take any appropriate actions."
    )
