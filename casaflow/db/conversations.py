"""Chat conversations and their messages."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .repository import Repository, row_to_dict

logger = logging.getLogger(__name__)


class ConversationRepository(Repository):
    TABLE_NAME = "agent_conversations"

    async def create(self, user_id: str, title: str) -> str:
        row = await self._insert({"user_id": user_id, "title": title, "status": "active"}, returning="id")
        return str(row["id"])

    async def get(self, conversation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one("id = $1 AND user_id = $2", (conversation_id, user_id))

    async def touch(self, conversation_id: str) -> None:
        await self.db.execute(
            "UPDATE agent_conversations SET updated_at = NOW() WHERE id = $1", conversation_id,
        )

    async def recent_messages(self, conversation_id: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Last *limit* messages, oldest first."""
        rows = await self.db.fetch(
            "SELECT * FROM (SELECT * FROM agent_messages WHERE conversation_id = $1 "
            "ORDER BY created_at DESC LIMIT $2) recent ORDER BY created_at ASC",
            conversation_id, limit,
        )
        return [row_to_dict(r) for r in rows]

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tool_calls: Optional[List[Dict[str, Any]]] = None,
        tool_results: Optional[List[Dict[str, Any]]] = None,
        tokens_used: int = 0,
    ) -> None:
        await self.db.execute(
            "INSERT INTO agent_messages (conversation_id, role, content, tool_calls, tool_results, tokens_used) "
            "VALUES ($1, $2, $3, $4, $5, $6)",
            conversation_id, role, content, tool_calls, tool_results, tokens_used,
        )

    async def count_user_messages_since(self, user_id: str, since: datetime) -> int:
        count = await self.db.fetchval(
            "SELECT COUNT(*) FROM agent_messages m JOIN agent_conversations c ON c.id = m.conversation_id "
            "WHERE c.user_id = $1 AND m.role = 'user' AND m.created_at >= $2",
            user_id, since,
        )
        return int(count or 0)
