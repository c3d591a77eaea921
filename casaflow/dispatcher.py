"""
Tool dispatchers - the side-effecting edge of the engine.

The gate hands an approved tool call to a ``ToolDispatcher``; the dispatcher
runs it and returns ``{"success": bool, "data"?: ..., "error"?: str}``. It
never raises for tool-level failures.

Two strategies:
- HttpToolDispatcher: POSTs the call to the product's tool-execution service.
- LocalToolDispatcher: in-process handler table keyed by tool name.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

ToolResult = Dict[str, Any]
ToolHandler = Callable[[Dict[str, Any], str], Awaitable[ToolResult]]


def unknown_tool_result(tool_name: str) -> ToolResult:
    return {"success": False, "error": f"Unknown tool: {tool_name}"}


def normalize_result(raw: Any) -> ToolResult:
    """Coerce a handler's return value into the dispatcher result shape."""
    if isinstance(raw, dict) and "success" in raw:
        return raw
    return {"success": True, "data": raw}


class ToolDispatcher(ABC):

    @abstractmethod
    async def execute(self, tool_name: str, params: Dict[str, Any], user_id: str) -> ToolResult:
        """Run *tool_name* for *user_id*."""

    async def close(self) -> None:
        return None


class LocalToolDispatcher(ToolDispatcher):
    """Dispatch to registered async handlers.

    Example:
        dispatcher = LocalToolDispatcher()

        @dispatcher.handler("get_property")
        async def get_property(params, user_id):
            return {"success": True, "data": {...}}
    """

    def __init__(self, handlers: Optional[Dict[str, ToolHandler]] = None):
        self._handlers: Dict[str, ToolHandler] = dict(handlers or {})

    def register(self, tool_name: str, handler: ToolHandler) -> None:
        self._handlers[tool_name] = handler

    def handler(self, tool_name: str):
        def decorator(fn: ToolHandler) -> ToolHandler:
            self.register(tool_name, fn)
            return fn
        return decorator

    async def execute(self, tool_name: str, params: Dict[str, Any], user_id: str) -> ToolResult:
        handler = self._handlers.get(tool_name)
        if handler is None:
            return unknown_tool_result(tool_name)
        try:
            return normalize_result(await handler(params, user_id))
        except Exception as e:
            logger.warning(f"[Dispatcher] {tool_name} raised: {e}")
            return {"success": False, "error": str(e) or f"Tool execution failed: {tool_name}"}


class HttpToolDispatcher(ToolDispatcher):
    """POST tool calls to an external execution service.

    Request body: ``{"tool_name", "params", "user_id"}``. The service answers
    with the result shape directly.
    """

    def __init__(
        self,
        endpoint: str,
        service_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        headers = {"Content-Type": "application/json"}
        if service_key:
            headers["Authorization"] = f"Bearer {service_key}"
        self._headers = headers
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def execute(self, tool_name: str, params: Dict[str, Any], user_id: str) -> ToolResult:
        client = self._get_client()
        try:
            response = await client.post(
                self._endpoint,
                json={"tool_name": tool_name, "params": params, "user_id": user_id},
                headers=self._headers,
            )
        except httpx.TimeoutException:
            return {"success": False, "error": f"Tool \"{tool_name}\" request timed out"}
        except httpx.HTTPError as e:
            return {"success": False, "error": f"Tool service connection error: {e}"}

        if response.status_code == 404:
            return unknown_tool_result(tool_name)
        if response.status_code >= 400:
            return {
                "success": False,
                "error": f"Tool service returned {response.status_code}: {response.text[:200]}",
            }
        try:
            return normalize_result(response.json())
        except ValueError:
            return {"success": False, "error": "Tool service returned invalid JSON"}

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
