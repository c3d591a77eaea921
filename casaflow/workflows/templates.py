"""Step templates for the workflows the agent can start."""

from typing import Any, Dict, List, Optional, Tuple

from .models import WorkflowStep

# (name, tool_name, static params, description)
_StepSpec = Tuple[str, Optional[str], Dict[str, Any], str]

WORKFLOW_TEMPLATES: Dict[str, List[_StepSpec]] = {
    "lease_renewal": [
        ("review_tenancy", "get_tenancy_detail", {}, "Load the tenancy, payment history and lease end date"),
        ("analyze_market_rent", "analyze_rent", {}, "Compare current rent with the local market"),
        ("recommend_terms", None, {}, "Decide whether to renew, adjust rent or not renew"),
        ("notify_owner", "send_in_app_message", {}, "Send the owner the renewal recommendation"),
        ("offer_renewal", "renew_lease", {}, "Offer renewal terms to the tenant once approved"),
    ],
    "arrears_escalation": [
        ("friendly_reminder", "send_rent_reminder", {"tone": "friendly"}, "Day 1-3: send a friendly rent reminder"),
        ("formal_reminder", "send_rent_reminder", {"tone": "formal"}, "Day 4-7: send a formal rent reminder"),
        ("alert_owner", "send_push_expo", {}, "Day 7: alert the owner about the arrears"),
        ("breach_notice", "generate_notice", {"notice_type": "breach"}, "Day 8-14: generate a breach notice"),
        ("send_breach_notice", "send_breach_notice", {}, "Send the approved breach notice to the tenant"),
        ("owner_decision", "escalate_arrears", {}, "Day 14+: owner decides on a payment plan or tribunal"),
    ],
    "maintenance_lifecycle": [
        ("triage", "triage_maintenance", {}, "Categorise urgency and suggest an action"),
        ("estimate", "estimate_cost", {}, "Estimate cost from the description and market rates"),
        ("find_trades", "get_trades", {}, "Find available tradespeople for the job"),
        ("work_order", "create_work_order", {}, "Create the work order"),
        ("notify_tenant", "send_message", {}, "Tell the tenant when the work is scheduled"),
        ("complete", "update_maintenance_status", {"status": "completed"}, "Mark the job completed"),
    ],
    "compliance_renewal": [
        ("check_requirements", "check_regulatory_requirements", {}, "Check the rules for this compliance item"),
        ("find_provider", "find_local_trades", {}, "Find a provider who can do the check"),
        ("request_quote", "request_quote", {}, "Request a quote for the check"),
        ("notify_owner", "send_in_app_message", {}, "Tell the owner the deadline and the plan"),
        ("record_completion", "record_compliance", {}, "Record the completed check"),
    ],
    "tenant_exit": [
        ("load_tenancy", "get_tenancy", {}, "Load tenancy details"),
        ("exit_inspection", "schedule_inspection", {"type": "exit"}, "Schedule the exit condition inspection"),
        ("compare_condition", "compare_inspections", {}, "Compare entry and exit condition"),
        ("bond", "claim_bond", {}, "Release or claim the bond"),
        ("final_report", "generate_financial_report", {}, "Generate the final tenancy financial report"),
        ("farewell", "send_message", {}, "Send the tenant a farewell message with bond details"),
    ],
    "listing_lifecycle": [
        ("load_property", "get_property", {}, "Load property details for the listing"),
        ("suggest_rent", "suggest_rent_price", {}, "Suggest a rent price from comparables"),
        ("draft_listing", "generate_listing", {}, "Generate listing copy"),
        ("create_listing", "create_listing", {}, "Create the draft listing for owner review"),
        ("publish", "publish_listing", {}, "Publish the approved listing"),
        ("review_applications", "rank_applications", {}, "Rank applications as they arrive"),
    ],
}

WORKFLOW_TYPES = tuple(WORKFLOW_TEMPLATES)


def build_steps(workflow_type: str, context: Optional[Dict[str, Any]] = None) -> List[WorkflowStep]:
    """Fresh steps for *workflow_type*, with *context* ids merged into every tool's params.

    Raises:
        ValueError: unknown workflow type.
    """
    if workflow_type not in WORKFLOW_TEMPLATES:
        raise ValueError(f"Unknown workflow type: {workflow_type}")
    context = {k: v for k, v in (context or {}).items() if v is not None}
    steps = []
    for name, tool_name, params, description in WORKFLOW_TEMPLATES[workflow_type]:
        steps.append(WorkflowStep(
            name=name,
            tool_name=tool_name,
            tool_params={**context, **params} if tool_name else {},
            description=description,
        ))
    return steps
