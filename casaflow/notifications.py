"""casaflow Notifications - deliver review summaries to owners."""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class HttpNotifier:
    """Send owner notifications through the product's notification service.

    Failures are logged and reported as ``False``; they never raise.

    Args:
        endpoint: URL of the dispatch-notification service
        service_key: Bearer token for the service
    """

    def __init__(self, endpoint: Optional[str], service_key: Optional[str] = None, timeout: float = 15.0):
        self._endpoint = endpoint
        self._service_key = service_key
        self._timeout = timeout

    async def send(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if not self._endpoint:
            logger.debug(f"[Notify] no endpoint configured, skipping {notification_type} for {user_id}")
            return False

        headers = {}
        if self._service_key:
            headers["Authorization"] = f"Bearer {self._service_key}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._endpoint,
                    json={
                        "user_id": user_id,
                        "type": notification_type,
                        "title": title,
                        "body": body,
                        "data": data or {},
                        "channels": ["push", "email"],
                    },
                    headers=headers,
                    timeout=self._timeout,
                )
                response.raise_for_status()
            logger.info(f"[Notify] {notification_type} sent to {user_id}")
            return True
        except Exception as e:
            logger.warning(f"[Notify] {notification_type} failed for {user_id}: {e}")
            return False
