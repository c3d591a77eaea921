"""Owner chat, pending-action and health routes."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...errors import ConfigurationError, NotFoundError, PersistenceError, RateLimitedError, UpstreamError
from ..app import require_app
from ..auth import get_current_user
from ..models import ChatRequest, ChatResponse, PendingActionResponse

logger = logging.getLogger(__name__)

router = APIRouter()

UPSTREAM_UNAVAILABLE = "AI service temporarily unavailable"
_OVERLOAD_STATUS = (429, 529)


def _error(status: int, message: str, headers=None, **extra) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status, headers=headers)


def upstream_error_response(e: UpstreamError) -> JSONResponse:
    if e.status_code in _OVERLOAD_STATUS:
        return _error(429, UPSTREAM_UNAVAILABLE, headers={"Retry-After": "30"}, retryAfter=30)
    return _error(502, UPSTREAM_UNAVAILABLE, headers={"Retry-After": "10"}, retryAfter=10)


@router.post("/api/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, user_id: str = Depends(get_current_user)):
    if not req.message and req.action is None:
        return _error(400, "Missing required field: message or action")

    app = require_app()
    try:
        if req.action is not None:
            reply = await app.resolve_pending_action(
                user_id,
                req.action.type,
                req.action.pending_action_id,
                conversation_id=req.conversation_id,
                message=req.message,
            )
        else:
            app.require_llm_credentials()
            reply = await app.chat(user_id, req.message, conversation_id=req.conversation_id)
    except RateLimitedError as e:
        return _error(429, str(e), headers={"Retry-After": str(e.retry_after)}, retryAfter=e.retry_after)
    except NotFoundError as e:
        return _error(404, str(e))
    except UpstreamError as e:
        logger.error(f"[Chat] upstream failure for {user_id}: {e}")
        return upstream_error_response(e)
    except ConfigurationError as e:
        return _error(500, f"Agent configuration error: {e}")
    except PersistenceError as e:
        logger.error(f"[Chat] persistence failure for {user_id}: {e}")
        return _error(500, str(e))
    return ChatResponse(**reply.to_dict())


@router.get("/api/pending-actions", response_model=List[PendingActionResponse])
async def pending_actions(user_id: str = Depends(get_current_user)):
    app = require_app()
    actions = await app.list_pending_actions(user_id)
    return [
        PendingActionResponse(
            id=a.id,
            action_type=a.action_type,
            title=a.title,
            description=a.description,
            tool_name=a.tool_name,
            tool_params=a.tool_params,
            autonomy_level=a.autonomy_level,
            recommendation=a.recommendation,
            conversation_id=a.conversation_id,
            status=a.status,
            created_at=a.created_at.isoformat() if a.created_at else None,
        )
        for a in actions
    ]


@router.get("/health")
async def health():
    return {"status": "ok"}
