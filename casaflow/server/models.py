"""Pydantic request/response models for the casaflow API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel


class ChatAction(BaseModel):
    type: Literal["approve", "reject"]
    pending_action_id: str


class ChatRequest(BaseModel):
    message: Optional[str] = None
    conversation_id: Optional[str] = None
    action: Optional[ChatAction] = None


class ChatResponse(BaseModel):
    conversation_id: str
    message: str
    tokens_used: int = 0
    tools_used: List[str] = []
    pending_actions: List[Dict[str, Any]] = []
    model: Optional[str] = None
    tool_result: Optional[Any] = None


class PendingActionResponse(BaseModel):
    id: Optional[str] = None
    action_type: str
    title: str
    description: str = ""
    tool_name: str
    tool_params: Dict[str, Any] = {}
    autonomy_level: int
    recommendation: str = ""
    conversation_id: Optional[str] = None
    status: str
    created_at: Optional[str] = None


class OrchestratorRunRequest(BaseModel):
    mode: Literal["instant", "daily", "weekly", "monthly"] = "instant"
    user_id: Optional[str] = None
    property_id: Optional[str] = None
    max_properties: Optional[int] = None


class OrchestratorRunResponse(BaseModel):
    mode: str
    processed: int
    events_processed: int
    workflows_advanced: int
    actions_taken: int
    notifications_sent: int
    errors: List[str]
    duration_ms: int
    total_tokens: int


class EventRequest(BaseModel):
    event_type: str
    user_id: str
    property_id: Optional[str] = None
    priority: Literal["instant", "high", "normal", "low"] = "normal"
    payload: Dict[str, Any] = {}


class EventResponse(BaseModel):
    id: str
    status: str = "queued"
