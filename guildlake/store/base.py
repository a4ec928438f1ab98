"""Shared plumbing for the DAO classes."""
from __future__ import annotations

from typing import Any, Iterable, TypeVar

from ..util import rows_from_tag

D = TypeVar("D", bound="Dao")


class Dao:
    """A DAO wraps anything with asyncpg's query methods.

    Both :class:`asyncpg.Pool` and :class:`asyncpg.Connection` qualify, so a
    DAO can run standalone against the pool or be rebound onto a connection
    that is inside a transaction.
    """

    def __init__(self, db: Any) -> None:
        self.db = db

    def bind(self: D, db: Any) -> D:
        return type(self)(db)


class SoftDeleteMixin:
    """``is_active`` bookkeeping for tables keyed by ``ext_id``."""

    table: str
    db: Any

    async def find_all_active_ext_ids(self) -> set[int]:
        rows = await self.db.fetch(
            f"SELECT ext_id FROM {self.table} WHERE is_active = TRUE"
        )
        return {r["ext_id"] for r in rows}

    async def mark_inactive(self, ext_id: int) -> int:
        tag = await self.db.execute(
            f"UPDATE {self.table} SET is_active = FALSE, updated_at = now() WHERE ext_id = $1",
            ext_id,
        )
        return rows_from_tag(tag)

    async def deactivate_by_ext_ids(self, ext_ids: Iterable[int]) -> int:
        ids = list(ext_ids)
        if not ids:
            return 0
        tag = await self.db.execute(
            f"""
            UPDATE {self.table} SET is_active = FALSE, updated_at = now()
            WHERE ext_id = ANY($1::bigint[])
            """,
            ids,
        )
        return rows_from_tag(tag)
