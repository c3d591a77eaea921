"""Request authentication for the casaflow API.

Three kinds of caller:

- owners, with a bearer session token resolved to a user id by the auth
  service's ``/user`` endpoint;
- the scheduler, with ``X-Cron-Secret`` or the service key as bearer;
- internal services, with the service key (bearer or ``X-Service-Key``).
"""

import hmac
import logging
import os
from typing import Optional

import httpx
from fastapi import HTTPException, Request

from .app import require_app

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 10.0

ORCHESTRATOR_UNAUTHORIZED = "Unauthorized. Provide X-Cron-Secret header or service role Bearer token."


def _matches(candidate: Optional[str], expected: Optional[str]) -> bool:
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate, expected)


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        return header[7:].strip() or None
    return None


def service_key() -> Optional[str]:
    return os.getenv("CASAFLOW_SERVICE_KEY") or require_app().auth_config.get("service_key")


def cron_secret() -> Optional[str]:
    return os.getenv("CASAFLOW_CRON_SECRET") or require_app().auth_config.get("cron_secret")


def verify_orchestrator_caller(request: Request) -> None:
    """Allow the scheduler (cron secret) or an internal service (service key)."""
    if _matches(request.headers.get("x-cron-secret"), cron_secret()):
        return
    if _matches(bearer_token(request), service_key()):
        return
    raise HTTPException(401, ORCHESTRATOR_UNAUTHORIZED)


def verify_service_key(request: Request) -> None:
    """Service key as bearer token or X-Service-Key header."""
    key = service_key()
    if not key:
        raise HTTPException(
            500,
            "CASAFLOW_SERVICE_KEY is not configured. "
            "Set the CASAFLOW_SERVICE_KEY environment variable to enable internal endpoints.",
        )
    if _matches(bearer_token(request), key) or _matches(request.headers.get("x-service-key"), key):
        return
    raise HTTPException(403, "Invalid service key")


async def get_current_user(request: Request) -> str:
    """Resolve the caller's bearer token to a user id."""
    token = bearer_token(request)
    if not token:
        raise HTTPException(401, "Missing authorization header")

    auth_cfg = require_app().auth_config
    auth_url = auth_cfg.get("url")
    if not auth_url:
        raise HTTPException(500, "Agent configuration error: auth.url is not configured")

    headers = {"Authorization": f"Bearer {token}"}
    if auth_cfg.get("api_key"):
        headers["apikey"] = auth_cfg["api_key"]
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{auth_url.rstrip('/')}/user", headers=headers, timeout=AUTH_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        logger.warning(f"[Auth] auth service unreachable: {e}")
        raise HTTPException(503, "Authentication service unavailable")

    if response.status_code != 200:
        raise HTTPException(401, "Unauthorized")
    user_id = (response.json() or {}).get("id")
    if not user_id:
        raise HTTPException(401, "Unauthorized")
    return str(user_id)
