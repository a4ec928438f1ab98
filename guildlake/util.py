import os
import logging
from datetime import datetime, timezone

import discord

# Discord snowflakes count milliseconds from 2015-01-01T00:00:00Z
DISCORD_EPOCH_MS = 1420070400000


def build_db_url() -> str | None:
    """Return a Postgres DSN built from env vars."""
    url = os.getenv("PG_DSN") or os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("PG_USER")
    pwd = os.getenv("PG_PASSWORD")
    db = os.getenv("PG_DB")
    if user and pwd and db:
        host = os.getenv("PG_HOST", "db")
        return f"postgresql+asyncpg://{user}:{pwd}@{host}:5432/{db}"
    return None


def int_env(var: str, default: int = 0) -> int:
    """Return int value from ENV or default if unset or invalid."""
    value = os.getenv(var)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logging.getLogger(__name__).warning(
            "Invalid integer for %s: %s; using %s", var, value, default
        )
        return default


def bool_env(var: str, default: bool = False) -> bool:
    """Return boolean value from ENV or default if unset or invalid."""
    value = os.getenv(var)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    logging.getLogger(__name__).warning(
        "Invalid boolean for %s: %s; using %s", var, value, default
    )
    return default


def rows_from_tag(tag: str) -> int:
    """Return the affected row count from an asyncpg status tag."""
    try:
        return int(str(tag).split()[-1])
    except (IndexError, ValueError):
        return 0


def utcnow() -> datetime:
    """Return an aware UTC timestamp."""
    return discord.utils.utcnow()


def snowflake_created_at(ext_id: int) -> datetime:
    """Decode the creation time embedded in a Discord snowflake."""
    ms = (int(ext_id) >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def enum_name(value) -> str | None:
    """Return a lowercase name for discord.py enums, or the raw string."""
    if value is None:
        return None
    name = getattr(value, "name", None)
    if name is not None:
        return str(name).lower()
    return str(value).lower()


def join_ids(ids) -> str:
    """Comma-join external ids in ascending order."""
    return ",".join(str(i) for i in sorted(ids))


def split_ids(raw: str | None) -> set[str]:
    """Inverse of :func:`join_ids`, tolerating blanks and whitespace."""
    if not raw:
        return set()
    return {part.strip() for part in raw.split(",") if part.strip()}
