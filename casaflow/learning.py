"""
Learning service client.

Owner feedback (approve/reject) and classified tool errors are posted to an
external learning pipeline that distils them into owner rules. Calls are
made from background tasks; any failure is logged and dropped.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class HttpLearningClient:

    def __init__(self, endpoint: Optional[str], service_key: Optional[str] = None, timeout: float = 15.0):
        self._endpoint = endpoint
        self._service_key = service_key
        self._timeout = timeout

    async def _post(self, payload: Dict[str, Any]) -> bool:
        if not self._endpoint:
            return False
        headers = {}
        if self._service_key:
            headers["Authorization"] = f"Bearer {self._service_key}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(self._endpoint, json=payload, headers=headers, timeout=self._timeout)
                response.raise_for_status()
            return True
        except Exception as e:
            logger.warning(f"[Learning] {payload.get('action')} failed: {e}")
            return False

    async def process_feedback(
        self,
        user_id: str,
        feedback: str,
        tool_name: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._post({
            "action": "process_feedback",
            "user_id": user_id,
            "feedback": feedback,
            "tool_name": tool_name,
            "context": context or {},
        })

    async def classify_and_learn(
        self,
        user_id: str,
        tool_name: str,
        error: str,
        error_type: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._post({
            "action": "classify_and_learn",
            "user_id": user_id,
            "tool_name": tool_name,
            "error": error,
            "error_type": error_type,
            "tool_input": params or {},
        })
