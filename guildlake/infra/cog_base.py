"""Pool wiring and listener guards for the event lake cogs.

Gateway listeners must never take the bot down: a listener without a pool
is a no-op, and a failed ingest is logged against the listener's module and
then dropped so the next event still gets recorded.
"""
from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

import asyncpg
from discord.ext import commands

from ..db import get_pool

if TYPE_CHECKING:
    from discord.ext.commands import Bot

log = logging.getLogger(f"guildlake.{__name__}")

F = TypeVar("F", bound=Callable[..., Any])


class PoolAwareCog(commands.Cog):
    """Cog holding the process-wide asyncpg pool as ``self.pool``.

    ``cog_load`` resolves the pool from ``PG_DSN``/``DATABASE_URL``. Without
    one the lake cannot store anything, so ``self.pool`` stays ``None`` and
    every ``require_pool`` listener turns into a no-op until the next load.
    """

    pool: asyncpg.Pool | None = None

    def __init__(self, bot: "Bot") -> None:
        self.bot = bot
        self.pool = None

    async def cog_load(self) -> None:
        try:
            self.pool = await get_pool()
        except RuntimeError:
            self.pool = None
            log.warning(
                "%s: database pool unavailable (PG_DSN missing); events will not be stored",
                self.__class__.__name__,
            )

    async def cog_unload(self) -> None:
        # the pool itself is closed by __main__ on shutdown
        self.pool = None

    @property
    def has_pool(self) -> bool:
        return self.pool is not None


def require_pool(func: F) -> F:
    """Drop the gateway event when the lake has no database."""

    @functools.wraps(func)
    async def wrapper(self: PoolAwareCog, *args: Any, **kwargs: Any) -> Any:
        if not getattr(self, "pool", None):
            return None
        return await func(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def log_errors(
    message: str = "Operation failed",
    *,
    reraise: bool = False,
    return_value: Any = None,
) -> Callable[[F], F]:
    """Log a listener's exception as ``"<message> in <listener>"``.

    Used on every ingest listener so one bad payload or a dropped
    connection costs that event only. ``reraise`` is for callers that must
    see the failure; otherwise ``return_value`` is returned.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except Exception:
                logging.getLogger(f"guildlake.{func.__module__}").exception(
                    "%s in %s", message, func.__name__
                )
                if reraise:
                    raise
                return return_value

        return wrapper  # type: ignore[return-value]

    return decorator
