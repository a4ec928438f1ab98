"""Shared Postgres connection pool for guildlake."""
from __future__ import annotations

import logging

import asyncpg

from .util import build_db_url

log = logging.getLogger(f"guildlake.{__name__}")

SCHEMA = "guildlake"

_pool: asyncpg.Pool | None = None


def asyncpg_dsn(url: str) -> str:
    """Strip the SQLAlchemy driver suffix so asyncpg accepts the DSN."""
    return url.replace("postgresql+asyncpg://", "postgresql://")


async def _init(conn: asyncpg.Connection) -> None:
    await conn.execute(f"SET search_path={SCHEMA},public")


async def get_pool() -> asyncpg.Pool:
    """Return a global asyncpg pool, creating it if needed."""
    global _pool
    if _pool:
        # A pool closed elsewhere is rebuilt rather than handed out again.
        try:
            if not _pool.is_closing():
                return _pool
        except AttributeError:  # pragma: no cover - simplified pools in tests
            return _pool
        _pool = None
    url = build_db_url()
    if not url:
        raise RuntimeError("PG_DSN is missing")
    _pool = await asyncpg.create_pool(asyncpg_dsn(url), init=_init)
    log.info("Database pool created")
    return _pool


async def close_pool() -> None:
    """Close the global pool if it exists."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
