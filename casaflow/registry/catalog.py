"""
Static tool catalog.

Every tool the LLM may call, with the governance metadata the autonomy gate
needs. Loaded once at import; never mutated.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

from .models import RiskLevel, ToolCategory, ToolMeta

# Field name -> JSON schema type, for fields that are not plain strings
_NUMBER_FIELDS = frozenset({
    "amount", "rent_amount", "rent_weekly", "new_amount", "budget", "estimated_cost",
    "total_arrears", "installment_amount", "claim_amount", "rating", "min_rating",
    "min_days", "limit", "top_n", "months", "current_days_overdue",
})
_BOOLEAN_FIELDS = frozenset({"include_paid", "unread_only", "overdue_only", "enabled"})
_OBJECT_FIELDS = frozenset({"updates", "original_plan"})
_ARRAY_FIELDS = frozenset({
    "participant_ids", "application_ids", "quote_ids", "steps", "include",
})


def _field_schema(name: str) -> Dict[str, Any]:
    if name in _NUMBER_FIELDS:
        kind = "number"
    elif name in _BOOLEAN_FIELDS:
        kind = "boolean"
    elif name in _OBJECT_FIELDS:
        kind = "object"
    elif name in _ARRAY_FIELDS:
        return {"type": "array", "items": {"type": "string"}, "description": name.replace("_", " ")}
    else:
        kind = "string"
    return {"type": kind, "description": name.replace("_", " ")}


def _schema(required: Iterable[str] = (), optional: Iterable[str] = ()) -> Dict[str, Any]:
    required = list(required)
    properties = {name: _field_schema(name) for name in [*required, *optional]}
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _tool(
    name: str,
    category: ToolCategory,
    level: int,
    description: str,
    required: Tuple[str, ...] = (),
    optional: Tuple[str, ...] = (),
    risk: RiskLevel = RiskLevel.NONE,
    reversible: bool = False,
    compensation: Optional[str] = None,
) -> ToolMeta:
    return ToolMeta(
        name=name,
        category=category,
        required_level=level,
        description=description,
        input_schema=_schema(required, optional),
        risk_level=risk,
        reversible=reversible,
        compensation_tool=compensation,
    )


Q = ToolCategory.QUERY
A = ToolCategory.ACTION
G = ToolCategory.GENERATE
X = ToolCategory.EXTERNAL
I = ToolCategory.INTEGRATION  # noqa: E741
W = ToolCategory.WORKFLOW
M = ToolCategory.MEMORY
P = ToolCategory.PLANNING

NONE = RiskLevel.NONE
LOW = RiskLevel.LOW
MEDIUM = RiskLevel.MEDIUM
HIGH = RiskLevel.HIGH
CRITICAL = RiskLevel.CRITICAL


TOOL_CATALOG: Tuple[ToolMeta, ...] = (
    # ── Query ──
    _tool("get_property", Q, 4, "Get property details including address, features, tenancy, and compliance",
          ("property_id",), ("include",)),
    _tool("get_properties", Q, 4, "List all owner's properties with summary stats", (), ("status", "limit")),
    _tool("search_tenants", Q, 4, "Search tenants by name, email, phone, or property", (), ("query", "property_id", "status")),
    _tool("get_tenancy", Q, 4, "Get active tenancy: tenants, lease dates, rent, bond status", (), ("tenancy_id", "property_id")),
    _tool("get_tenancy_detail", Q, 4, "Full tenancy: tenants, lease dates, rent, bond, documents, rent increases, payment history",
          ("tenancy_id",)),
    _tool("get_payments", Q, 4, "Get payment history with amounts and statuses", (), ("tenant_id", "property_id", "period", "status")),
    _tool("get_rent_schedule", Q, 4, "Get upcoming rent due dates and amounts", ("tenancy_id",), ("include_paid",)),
    _tool("get_arrears", Q, 4, "Get all tenants in arrears with days overdue and escalation level", (), ("property_id", "min_days", "severity")),
    _tool("get_arrears_detail", Q, 4, "Full arrears record: amount, days overdue, actions taken, payment plan, escalation level",
          (), ("arrears_id", "tenancy_id")),
    _tool("get_maintenance", Q, 4, "Get maintenance requests filtered by property/status/urgency", (), ("property_id", "status", "urgency")),
    _tool("get_maintenance_detail", Q, 4, "Full maintenance request: quotes, photos, comments, timeline", ("request_id",)),
    _tool("get_quotes", Q, 4, "Get all quotes for a maintenance request with trade rankings", ("request_id",)),
    _tool("get_inspections", Q, 4, "Get inspection history and upcoming scheduled inspections", (), ("property_id", "type", "status")),
    _tool("get_inspection_detail", Q, 4, "Get full inspection: rooms, items, condition ratings, photos, tenant response", ("inspection_id",)),
    _tool("get_listings", Q, 4, "Get listings with view/enquiry/application counts", (), ("property_id", "status")),
    _tool("get_listing_detail", Q, 4, "Full listing: features, policies, photos, view count, application count, portal status", ("listing_id",)),
    _tool("get_applications", Q, 4, "Get applications for a listing with scores and screening", ("listing_id",), ("status", "top_n")),
    _tool("get_application_detail", Q, 4, "Full application: documents, references, checks, score", ("application_id",)),
    _tool("get_conversations", Q, 4, "Get message threads across properties", (), ("property_id", "unread_only")),
    _tool("get_conversation_messages", Q, 4, "Get messages for a conversation thread with sender details", ("conversation_id",), ("limit",)),
    _tool("get_compliance_status", Q, 4, "Get compliance status for properties (smoke alarms, gas, pool, etc.)", (), ("property_id", "overdue_only")),
    _tool("get_financial_summary", Q, 4, "Get income, expenses, net position for period", ("period",), ("property_id", "start_date", "end_date")),
    _tool("get_transactions", Q, 4, "Get itemized transactions (rent, bond, maintenance, fees)", (), ("property_id", "type", "period")),
    _tool("get_trades", Q, 4, "Search tradesperson network by category/area/rating", (), ("category", "postcode", "min_rating")),
    _tool("get_work_orders", Q, 4, "Get work orders for a property or trade with status and cost details", (), ("property_id", "trade_id", "status")),
    _tool("get_expenses", Q, 4, "Get expense records for tax reporting and financial analysis", (), ("property_id", "period", "category")),
    _tool("get_payment_plan", Q, 4, "Get payment plan details including installments and status", (), ("tenancy_id", "arrears_id")),
    _tool("get_documents", Q, 4, "Get documents for a property or tenancy", (), ("property_id", "tenancy_id")),
    _tool("get_background_tasks", Q, 4, "Get status of running background tasks", ()),
    _tool("get_pending_actions", Q, 4, "Get all actions awaiting owner approval", ()),
    _tool("check_maintenance_threshold", Q, 3, "Check if repair cost within auto-approval threshold",
          ("property_id", "estimated_cost", "category")),
    _tool("check_regulatory_requirements", Q, 3, "Check state-specific regulatory requirements for a property action",
          ("state", "action_type")),

    # ── Action ──
    _tool("create_property", A, 1, "Create a new property with address, details, and financials",
          ("address_line_1", "suburb", "state", "postcode"), risk=MEDIUM, reversible=True, compensation="delete_property"),
    _tool("update_property", A, 2, "Update property details: address, features, financials, notes",
          ("property_id", "updates"), risk=LOW, reversible=True),
    _tool("delete_property", A, 0, "Soft-delete a property", ("property_id",), risk=HIGH, reversible=True),
    _tool("create_tenancy", A, 1, "Create a new tenancy: lease, tenants, bond, rent schedule",
          ("property_id", "lease_start_date", "rent_amount", "rent_frequency"), risk=HIGH),
    _tool("update_tenancy", A, 2, "Update tenancy fields: rent, dates, status, notes", ("tenancy_id", "updates"), risk=MEDIUM, reversible=True),
    _tool("terminate_lease", A, 0, "Initiate lease termination", ("tenancy_id", "termination_type", "effective_date"), risk=CRITICAL),
    _tool("renew_lease", A, 1, "Renew lease with new dates and optional rent adjustment", ("tenancy_id", "new_end_date"), ("new_amount",), risk=HIGH),
    _tool("create_listing", A, 2, "Create new property listing (draft)", ("property_id", "title", "rent_weekly"), risk=MEDIUM, reversible=True),
    _tool("update_listing", A, 2, "Update listing details", ("listing_id", "updates"), risk=LOW, reversible=True),
    _tool("publish_listing", A, 1, "Publish draft listing to portals", ("listing_id",), risk=MEDIUM, reversible=True, compensation="pause_listing"),
    _tool("pause_listing", A, 2, "Pause an active listing", ("listing_id",), risk=LOW, reversible=True),
    _tool("send_message", A, 2, "Send message to tenant via preferred channel", ("tenant_id", "content"), ("channel",), risk=MEDIUM),
    _tool("create_conversation", A, 2, "Create a new in-app conversation thread with participants", ("participant_ids",), ("title",), risk=MEDIUM),
    _tool("send_in_app_message", A, 2, "Send a message in an existing conversation thread", ("conversation_id", "content"), risk=MEDIUM),
    _tool("send_rent_reminder", A, 3, "Send templated rent reminder to tenant", ("tenancy_id",), ("tone",), risk=LOW),
    _tool("send_breach_notice", A, 0, "Generate and send state-compliant breach notice", ("tenancy_id", "breach_type", "details", "state"), risk=HIGH),
    _tool("create_maintenance", A, 2, "Create new maintenance request", ("property_id", "title", "urgency", "category"), ("description",),
          risk=LOW, reversible=True),
    _tool("update_maintenance_status", A, 2, "Update maintenance request status", ("request_id", "status"), ("notes",), risk=LOW, reversible=True),
    _tool("add_maintenance_comment", A, 3, "Add a comment to a maintenance request thread", ("request_id", "content"), risk=LOW),
    _tool("record_maintenance_cost", A, 2, "Record estimated or actual cost for a maintenance request", ("request_id",),
          ("estimated_cost", "amount"), risk=LOW, reversible=True),
    _tool("schedule_inspection", A, 3, "Schedule inspection with tenant notification", ("property_id", "type", "preferred_date"),
          risk=LOW, reversible=True, compensation="cancel_inspection"),
    _tool("cancel_inspection", A, 2, "Cancel a scheduled inspection", ("inspection_id",), ("reason",), risk=LOW),
    _tool("record_inspection_finding", A, 2, "Record condition rating and notes for an inspection item",
          ("inspection_id", "item_id", "condition"), ("notes",), risk=LOW, reversible=True),
    _tool("submit_inspection_to_tenant", A, 2, "Submit completed inspection to tenant for review and acknowledgement",
          ("inspection_id",), risk=MEDIUM),
    _tool("finalize_inspection", A, 2, "Finalize and lock an inspection after tenant review", ("inspection_id",), risk=MEDIUM),
    _tool("create_work_order", A, 3, "Create work order for tradesperson", ("request_id", "trade_id", "scope", "budget"),
          risk=MEDIUM, reversible=True),
    _tool("update_work_order_status", A, 2, "Update work order status (accept, start, complete, cancel)", ("work_order_id", "status"), risk=LOW),
    _tool("approve_quote", A, 1, "Approve maintenance quote, schedule trade", ("quote_id", "request_id"), ("amount",), risk=HIGH),
    _tool("reject_quote", A, 2, "Reject a maintenance quote with reason", ("quote_id", "reason"), risk=LOW),
    _tool("accept_application", A, 1, "Approve tenant application (triggers onboarding workflow)", ("application_id",), risk=HIGH),
    _tool("reject_application", A, 1, "Reject tenant application with reason", ("application_id", "reason"), risk=HIGH),
    _tool("shortlist_application", A, 2, "Move application to shortlist", ("application_id",), risk=MEDIUM, reversible=True),
    _tool("create_payment_plan", A, 1, "Create payment plan for tenant in arrears", ("tenancy_id", "total_arrears", "installment_amount"),
          risk=MEDIUM, reversible=True),
    _tool("escalate_arrears", A, 1, "Move arrears to next escalation level", ("tenancy_id", "current_level", "next_level"), risk=HIGH),
    _tool("resolve_arrears", A, 1, "Mark an arrears record as resolved", ("arrears_id", "resolution_reason"), risk=MEDIUM),
    _tool("log_arrears_action", A, 3, "Log an action taken on an arrears case", ("arrears_id", "action_type", "description"), risk=LOW),
    _tool("create_rent_increase", A, 1, "Create rent increase notice with state-compliant notice period",
          ("tenancy_id", "new_amount", "effective_date"), risk=HIGH, reversible=True),
    _tool("change_rent_amount", A, 0, "Change rent on tenancy (requires notice period)", ("tenancy_id", "new_amount", "effective_date"), risk=HIGH),
    _tool("record_compliance", A, 2, "Record compliance completion with evidence", ("property_id", "compliance_type", "completed_date"),
          risk=LOW, reversible=True),
    _tool("add_trade_to_network", A, 2, "Add a tradesperson to the owner's preferred network", ("trade_id",), reversible=True),
    _tool("submit_trade_review", A, 2, "Submit a review and rating for a tradesperson", ("trade_id", "rating"), ("comment",),
          risk=LOW, reversible=True),
    _tool("invite_tenant", A, 2, "Send a direct invitation to a tenant to connect them to a property", ("email", "property_id"), risk=MEDIUM),
    _tool("process_payment", A, 1, "Process a rent payment charge", ("tenancy_id", "amount"), risk=HIGH),
    _tool("lodge_bond", A, 1, "Lodge bond with state authority", ("tenancy_id", "amount", "state"), risk=HIGH),
    _tool("send_receipt", A, 4, "Send payment receipt notification to tenant", ("payment_id", "tenant_id")),
    _tool("retry_payment", A, 1, "Retry a failed or declined payment", ("payment_id",), risk=MEDIUM),
    _tool("claim_bond", A, 0, "Submit a bond claim for tenant damage or unpaid rent", ("tenancy_id", "claim_amount", "reason"), risk=HIGH),
    _tool("update_autopay", A, 1, "Enable or disable automatic rent payments for a tenancy", ("tenancy_id", "enabled"),
          risk=MEDIUM, reversible=True),
    _tool("cancel_rent_increase", A, 1, "Cancel a pending rent increase", ("rent_increase_id",), risk=MEDIUM),

    # ── Generate ──
    _tool("generate_listing", G, 2, "Generate listing copy from property data and photos", ("property_id",)),
    _tool("draft_message", G, 3, "Draft message with specified purpose and tone", ("purpose", "tone", "recipient_type")),
    _tool("score_application", G, 3, "Score an application (0-100) with reasoning", ("application_id",)),
    _tool("rank_applications", G, 2, "Rank and compare multiple applications", ("listing_id", "application_ids")),
    _tool("triage_maintenance", G, 3, "Categorise urgency, estimate cost, suggest action", ("request_id",)),
    _tool("estimate_cost", G, 3, "Estimate maintenance cost from description and market rates", ("category", "description")),
    _tool("analyze_rent", G, 2, "Analyse rent vs market with recommendation", ("property_id",)),
    _tool("suggest_rent_price", G, 2, "Suggest optimal rent from comparables", ("property_id",)),
    _tool("generate_notice", G, 0, "Generate state-compliant legal notice", ("tenancy_id", "notice_type", "state"), risk=HIGH),
    _tool("generate_inspection_report", G, 2, "Generate report from photos and condition data", ("inspection_id",)),
    _tool("compare_inspections", G, 2, "Compare entry vs exit inspection with change detection", ("entry_inspection_id", "exit_inspection_id")),
    _tool("generate_financial_report", G, 3, "Generate monthly/quarterly financial summary", ("period",), ("property_id",)),
    _tool("generate_tax_report", G, 3, "Generate tax-ready income and expense summary for financial year", ("financial_year",)),
    _tool("generate_property_summary", G, 3, "Generate comprehensive property summary with performance metrics", ("property_id",)),
    _tool("generate_portfolio_report", G, 3, "Generate multi-property portfolio analysis with yield, vacancy, and forecasting", ("period",)),
    _tool("generate_cash_flow_forecast", G, 3, "Generate 3/6/12 month cash flow projection based on historical data", ("months",)),
    _tool("generate_lease", G, 1, "Generate state-compliant lease document", ("tenancy_id", "state", "lease_type"), risk=MEDIUM),
    _tool("assess_tenant_damage", G, 3, "Analyse if damage is tenant-caused vs wear and tear", ("description",)),
    _tool("compare_quotes", G, 3, "Compare multiple quotes with ranked recommendations", ("maintenance_request_id", "quote_ids")),

    # ── External ──
    _tool("web_search", X, 3, "Search the web for property management info: regulations, market rates, service providers", ("query",)),
    _tool("find_local_trades", X, 3, "Search for local tradespeople near a property", ("trade_type",), ("property_id", "suburb"), risk=LOW),
    _tool("parse_business_details", X, 3, "Extract structured business info from a webpage", ("url",)),
    _tool("create_service_provider", X, 1, "Create or update a service provider card with structured business details",
          ("business_name", "trade_type", "phone"), risk=LOW, reversible=True),
    _tool("request_quote", X, 1, "Send quote request to tradesperson with maintenance details", ("description", "property_id"),
          ("trade_id", "request_id"), risk=MEDIUM),
    _tool("get_market_data", X, 3, "Fetch rental market data for suburb: median rents, vacancy rates, yield, trends", ("suburb", "state")),

    # ── Workflow ──
    _tool("workflow_find_tenant", W, 1, "Full workflow: list, syndicate, screen, recommend", ("property_id",), risk=MEDIUM),
    _tool("workflow_onboard_tenant", W, 1, "Onboard workflow: lease, sign, bond, inspection", ("application_id",), risk=HIGH),
    _tool("workflow_end_tenancy", W, 1, "End tenancy: exit inspection, bond, relist", ("tenancy_id",), risk=HIGH),
    _tool("workflow_maintenance_lifecycle", W, 2, "Full maintenance: report, triage, quote, approve, complete", ("request_id",), risk=MEDIUM),
    _tool("workflow_arrears_escalation", W, 1, "Arrears ladder: reminder, formal, notice, tribunal", ("tenancy_id", "current_days_overdue"),
          risk=HIGH),
    _tool("workflow_lease_renewal", W, 2, "Lease renewal: market review, offer, negotiate, sign", ("tenancy_id",), risk=MEDIUM),

    # ── Memory ──
    _tool("remember", M, 4, "Store owner preference or fact for future use", ("key", "value"), reversible=True),
    _tool("recall", M, 4, "Retrieve preferences relevant to current context", ("context",)),
    _tool("search_precedent", M, 4, "Search past decisions for similar context", ("query",)),

    # ── Planning ──
    _tool("plan_task", P, 3, "Break complex request into ordered steps with tool assignments", ("request",)),
    _tool("get_owner_rules", P, 4, "Retrieve owner-defined automation rules and preferences", ()),
    _tool("check_plan", P, 4, "Check progress of a multi-step plan", ("steps",)),
    _tool("replan", P, 3, "Revise a plan after a step fails or context changes", ("original_plan", "reason")),

    # ── Integration ──
    _tool("syndicate_listing_domain", I, 1, "Post or update listing on Domain", ("listing_id", "action"), risk=MEDIUM, reversible=True),
    _tool("syndicate_listing_rea", I, 1, "Post or update listing on realestate.com.au", ("listing_id", "action"), risk=MEDIUM, reversible=True),
    _tool("run_credit_check", I, 1, "Run credit check on applicant", ("application_id",), risk=LOW),
    _tool("run_tica_check", I, 1, "Check the tenancy database for applicant", ("application_id",), risk=LOW),
    _tool("collect_rent_stripe", I, 1, "Collect rent payment via Stripe Connect", ("tenancy_id", "amount"), risk=HIGH),
    _tool("refund_payment_stripe", I, 0, "Refund a Stripe payment", ("payment_id",), ("amount",), risk=HIGH),
    _tool("send_docusign_envelope", I, 1, "Send document for digital signature via DocuSign", ("document_type", "tenancy_id"), risk=MEDIUM),
    _tool("lodge_bond_state", I, 0, "Lodge bond with state bond authority", ("tenancy_id", "state", "amount"), risk=HIGH),
    _tool("send_sms_twilio", I, 1, "Send SMS notification via Twilio", ("to", "message"), risk=LOW),
    _tool("send_email_sendgrid", I, 2, "Send email via SendGrid", ("to", "subject", "html_content"), risk=LOW),
    _tool("send_push_expo", I, 3, "Send push notification to the owner's or tenant's devices", ("user_id", "title", "body")),
    _tool("search_trades_hipages", I, 4, "Search hipages for tradespeople", ("trade_type", "suburb"), ("state",)),
)
