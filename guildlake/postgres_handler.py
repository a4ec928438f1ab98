import asyncio
import logging
from datetime import datetime, timezone

import asyncpg

from .db import SCHEMA, asyncpg_dsn


class PostgresHandler(logging.Handler):
    """Asynchronously insert operational log records into Postgres."""

    def __init__(self, dsn: str, table: str = "operational_log") -> None:
        super().__init__()
        self.dsn = dsn
        self.table = table
        self.pool: asyncpg.Pool | None = None
        self.loop: asyncio.AbstractEventLoop | None = None
        # DEBUG records stay out of the database
        self.setLevel(logging.INFO)

    async def connect(self) -> None:
        async def _init(conn: asyncpg.Connection) -> None:
            await conn.execute(f"SET search_path={SCHEMA},public")

        self.pool = await asyncpg.create_pool(asyncpg_dsn(self.dsn), init=_init)
        self.loop = asyncio.get_running_loop()

        create_sql = (
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id SERIAL PRIMARY KEY,
                logger_name TEXT NOT NULL,
                log_level TEXT NOT NULL,
                message TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await self.pool.execute(create_sql)

    async def aclose(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None

    def close(self) -> None:
        if self.pool:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                loop.create_task(self.pool.close())
            elif self.loop is not None and not self.loop.is_closed():
                asyncio.run_coroutine_threadsafe(self.pool.close(), self.loop)
            self.pool = None
        super().close()

    def _insert(self, record: logging.LogRecord) -> None:
        if not self.pool:
            return
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        coro = self.pool.execute(
            f"INSERT INTO {self.table} (logger_name, log_level, message, created_at) VALUES ($1, $2, $3, $4)",
            record.name,
            record.levelname,
            record.getMessage(),
            ts,
        )
        asyncio.ensure_future(coro)

    def emit(self, record: logging.LogRecord) -> None:
        if not self.pool:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not None:
            self._insert(record)
        elif self.loop is not None and not self.loop.is_closed():
            # records logged from worker threads hop onto the bot loop
            self.loop.call_soon_threadsafe(self._insert, record)
