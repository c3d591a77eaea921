"""
asyncpg pool shared by every repository.

``CasaFlow`` creates one Database from the ``database`` DSN in the config;
tests inject their own object with the same coroutine methods instead.
json/jsonb columns are encoded and decoded transparently, so repositories
pass dicts and lists straight through as query arguments.
"""

import json
import logging
from typing import Any, List, Optional

import asyncpg

logger = logging.getLogger(__name__)


async def _register_json_codecs(conn) -> None:
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(
            typename,
            schema="pg_catalog",
            encoder=lambda value: json.dumps(value, default=str),
            decoder=json.loads,
        )


class Database:

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool is not open; await initialize() first")
        return self._pool

    async def initialize(self) -> None:
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            self._dsn,
            min_size=self._min_size,
            max_size=self._max_size,
            init=_register_json_codecs,
        )
        logger.info(f"[DB] pool open (min={self._min_size}, max={self._max_size})")

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("[DB] pool closed")

    # Pool.execute/fetch/... acquire and release a connection per call
    async def execute(self, query: str, *args: Any) -> str:
        return await self.pool.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        return await self.pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        return await self.pool.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        return await self.pool.fetchval(query, *args)
