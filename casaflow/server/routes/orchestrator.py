"""Orchestrator run route, called by cron or internal services."""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...errors import ConfigurationError
from ..app import require_app
from ..auth import verify_orchestrator_caller
from ..models import OrchestratorRunRequest, OrchestratorRunResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/api/orchestrator/run",
    response_model=OrchestratorRunResponse,
    dependencies=[Depends(verify_orchestrator_caller)],
)
async def run_orchestrator(req: OrchestratorRunRequest = OrchestratorRunRequest()):
    start = time.monotonic()
    app = require_app()
    try:
        app.require_llm_credentials()
    except ConfigurationError as e:
        return JSONResponse({"error": f"Agent configuration error: {e}"}, status_code=500)

    try:
        summary = await app.run_orchestrator(
            req.mode,
            user_id=req.user_id,
            property_id=req.property_id,
            max_properties=req.max_properties,
        )
    except Exception as e:
        logger.error(f"[Orchestrator] fatal error in {req.mode} run: {e}")
        return JSONResponse(
            {"error": str(e), "duration_ms": int((time.monotonic() - start) * 1000)},
            status_code=500,
        )
    return OrchestratorRunResponse(**summary.to_dict())
