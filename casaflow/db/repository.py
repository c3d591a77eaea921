"""
Repository base for the casaflow tables.

A subclass names its table in ``TABLE_NAME`` and writes its own queries with
asyncpg ``$n`` placeholders; the helpers here cover the repetitive parts
(column-list inserts, filtered selects, guarded single-row updates). Schema
changes go through the alembic migrations, never through repositories.

Example:
    class RuleRepository(Repository):
        TABLE_NAME = "agent_rules"

        async def active_for(self, user_id: str) -> list:
            return await self._fetch_many("user_id = $1 AND active = true", (user_id,))
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def row_to_dict(row: Any) -> Dict[str, Any]:
    """asyncpg Record -> dict, with UUID ids rendered as strings."""
    data = dict(row)
    if data.get("id") is not None and not isinstance(data["id"], (str, int)):
        data["id"] = str(data["id"])
    return data


def rows_affected(status: str) -> int:
    """Parse asyncpg's command tag, e.g. ``"UPDATE 1"`` -> 1."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class Repository:

    TABLE_NAME: str = ""

    def __init__(self, db):
        self._db = db

    @property
    def db(self):
        return self._db

    async def _insert(self, data: Dict[str, Any], returning: str = "*") -> Optional[Dict[str, Any]]:
        columns = ", ".join(data)
        placeholders = ", ".join(f"${i}" for i in range(1, len(data) + 1))
        row = await self._db.fetchrow(
            f"INSERT INTO {self.TABLE_NAME} ({columns}) VALUES ({placeholders}) RETURNING {returning}",
            *data.values(),
        )
        return row_to_dict(row) if row else None

    async def _update_one(self, query: str, *args: Any) -> bool:
        """Run a conditional UPDATE; True only when exactly one row changed.

        The WHERE clause carries the state guard (``status = 'pending'``,
        ``processed = false``...), so a False result means someone else
        already moved the row.
        """
        return rows_affected(await self._db.execute(query, *args)) == 1

    async def _fetch_many(
        self,
        where: str = "",
        args: tuple = (),
        order_by: str = "",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = f"SELECT * FROM {self.TABLE_NAME}"
        if where:
            query += f" WHERE {where}"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {int(limit)}"
        return [row_to_dict(r) for r in await self._db.fetch(query, *args)]

    async def _fetch_one(self, where: str, args: tuple = ()) -> Optional[Dict[str, Any]]:
        rows = await self._fetch_many(where, args, limit=1)
        return rows[0] if rows else None
