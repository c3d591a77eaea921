"""System prompts for the casaflow agent.

Modular prompt system: each section is a function that returns a string.
Sections are composed in build_system_prompt() from the owner's settings,
rules and golden paths.
"""

from typing import Any, Dict, List, Optional

from ..gate.autonomy import AutonomySettings
from ..models import Trajectory


# ---------------------------------------------------------------------------
# Section renderers: each returns a prompt fragment or empty string
# ---------------------------------------------------------------------------

def render_preamble(owner_name: str = "there") -> str:
    return (
        "You are Casa, an AI property manager for residential rental properties. "
        "You manage every part of the owner's portfolio: properties, tenants, rent, "
        "maintenance, compliance, finances, inspections, listings and trades.\n"
        f"You are working for {owner_name}."
    )


def render_autonomy(settings: AutonomySettings) -> str:
    levels = "\n".join(f"- {category}: L{level}" for category, level in settings.summary().items())
    return f"""
# Autonomy

Autonomy levels decide what you may do without asking:
- L0 Inform: always requires owner approval
- L1 Suggest: propose the action and wait for confirmation
- L2 Draft: prepare the action for review
- L3 Execute: do it and report afterwards
- L4 Autonomous: silent execution (queries, memory)

The owner uses the "{settings.preset.value}" preset. Granted level per tool category:
{levels}

Costs above ${settings.financial_threshold:,.0f} always need approval.
If a tool result says the action needs approval, tell the owner what you proposed and why. Never retry it.
""".strip()


def render_rules(rules: List[Dict[str, Any]]) -> str:
    if not rules:
        return ""
    lines = "\n".join(
        f"- [{r.get('category', 'general')}] {r.get('rule_text', '')} "
        f"(confidence: {r.get('confidence', 0)}, source: {r.get('source', 'unknown')})"
        for r in rules
    )
    return f"# Owner Rules\n\nYou MUST follow these rules, learned from past corrections and instructions:\n{lines}"


def render_golden_paths(paths: List[Trajectory]) -> str:
    if not paths:
        return ""
    lines = []
    for path in paths:
        sequence = " -> ".join(step.name for step in path.tool_sequence)
        lines.append(f'- "{path.intent_label or "general"}": {sequence} (score: {path.efficiency_score})')
    return (
        "# Golden Tool Paths\n\n"
        "Proven efficient approaches. Prefer these sequences for similar requests:\n" + "\n".join(lines)
    )


def render_guidelines() -> str:
    return """
# Guidelines

1. Always use tools to get current data. Never fabricate data or tool results.
2. Think in workflows, not isolated actions: check the record, act, then notify.
3. When an action requires approval, explain clearly what you want to do and why.
4. Confirm financial changes (rent changes, payment plans, bond adjustments) before executing them.
5. Write plain text without Markdown. Use short bullet points for lists.
6. When a record is not found, say so explicitly.
7. When the owner asks you to remember a preference, store it with the remember tool.
""".strip()


def render_orchestrator_context(description: str, source_tag: str, property_id: Optional[str] = None) -> str:
    """Extra instructions for unattended runs (events, reviews, workflows)."""
    lines = [
        "ORCHESTRATOR CONTEXT:",
        f"You are running in autonomous orchestrator mode, NOT in chat mode. {description} "
        "Act decisively within your autonomy limits. Do not ask the owner questions; "
        "take action or create pending actions for approval. Be brief in your reasoning.",
        f"Event source: {source_tag}",
    ]
    if property_id is not None:
        lines.append(f"Property ID: {property_id or 'not specified'}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Composer: assembles the final system prompt
# ---------------------------------------------------------------------------

def build_system_prompt(
    *,
    settings: AutonomySettings,
    owner_name: str = "there",
    rules: Optional[List[Dict[str, Any]]] = None,
    golden_paths: Optional[List[Trajectory]] = None,
    orchestrator_context: str = "",
) -> str:
    """Build the full system prompt from modular sections.

    Args:
        settings: The owner's autonomy settings.
        owner_name: How to address the owner.
        rules: Active owner rules, highest confidence first.
        golden_paths: Golden trajectories to offer as examples.
        orchestrator_context: Appended for unattended runs.

    Returns:
        Complete system prompt string.
    """
    sections = [
        render_preamble(owner_name),
        render_autonomy(settings),
        render_rules(rules or []),
        render_golden_paths(golden_paths or []),
        render_guidelines(),
    ]
    if orchestrator_context:
        sections.append(orchestrator_context)
    return "\n\n".join(s for s in sections if s)
