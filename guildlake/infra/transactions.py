"""Transaction helpers for guildlake database operations."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg


@asynccontextmanager
async def transaction(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a connection and run the block inside one transaction.

    Commits when the block exits normally and rolls back on error, so an
    event row is never visible without its detail rows.

    Example::

        async with transaction(pool) as conn:
            event_id = await events.bind(conn).insert(...)
            await messages.bind(conn).upsert(...)
    """
    async with pool.acquire() as conn:
        async with conn.transaction():
            yield conn
