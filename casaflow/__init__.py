"""
casaflow - an autonomous agent engine for residential property management

casaflow runs an LLM tool-use loop on behalf of property owners. Every tool
call passes an autonomy gate that either executes it or turns it into a
pending action for the owner to approve. The same loop serves four entry
points:

- owner chat (``POST /api/chat``)
- the domain event queue (payment failed, lease expiring, ...)
- multi-step workflows advanced over days (lease renewal, arrears, ...)
- daily / weekly / monthly portfolio reviews with proactive scanners

Quick Start:
    from casaflow import CasaFlow

    app = CasaFlow("config.yaml")
    reply = await app.chat("owner-1", "Has the plumber been booked for Elm St?")
    print(reply.message)

    summary = await app.run_orchestrator("daily")
    print(summary.to_dict())

Tools are executed by a dispatcher. In production tool calls are POSTed to
the product's execution service; in-process handlers work too:
    from casaflow import CasaFlow, LocalToolDispatcher

    dispatcher = LocalToolDispatcher()

    @dispatcher.handler("get_property")
    async def get_property(params, user_id):
        return {"success": True, "data": {"id": params["property_id"]}}

    app = CasaFlow("config.yaml", dispatcher=dispatcher)
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    CasaflowError,
    ConfigurationError,
    NotFoundError,
    PersistenceError,
    RateLimitedError,
    UpstreamError,
)

# Records
from .models import Decision, PendingAction, Trajectory, TrajectoryStep
from .events.models import Event, EventPriority
from .workflows.models import Workflow, WorkflowStatus, WorkflowStep

# Tools and gating
from .registry import ToolCategory, ToolMeta, ToolRegistry
from .dispatcher import HttpToolDispatcher, LocalToolDispatcher, ToolDispatcher
from .gate import AutonomyGate, AutonomyPreset, AutonomySettings, GateContext, SubscriptionTier

# LLM
from .llm import LLMConfig, LLMGateway, LiteLLMClient, ModelTier

# Run results
from .runtime import RunSummary, RuntimeBudget

# Application Entry Point
from .app import CasaFlow

__all__ = [
    "__version__",
    # Errors
    "CasaflowError", "ConfigurationError", "NotFoundError",
    "PersistenceError", "RateLimitedError", "UpstreamError",
    # Records
    "Decision", "PendingAction", "Trajectory", "TrajectoryStep",
    "Event", "EventPriority", "Workflow", "WorkflowStatus", "WorkflowStep",
    # Tools and gating
    "ToolCategory", "ToolMeta", "ToolRegistry",
    "ToolDispatcher", "HttpToolDispatcher", "LocalToolDispatcher",
    "AutonomyGate", "AutonomyPreset", "AutonomySettings", "GateContext", "SubscriptionTier",
    # LLM
    "LLMConfig", "LLMGateway", "LiteLLMClient", "ModelTier",
    # Runs
    "RunSummary", "RuntimeBudget",
    # Application
    "CasaFlow",
]
