"""Single-row tables: guild metadata and bot statistics."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from .base import Dao


class GuildMetadataDao(Dao):
    async def upsert(
        self,
        ext_id: int,
        name: str,
        created_at: datetime | None = None,
        member_count: int | None = None,
    ) -> None:
        await self.db.execute(
            """
            INSERT INTO guild_metadata (id, ext_id, name, created_at, member_count, updated_at)
            VALUES (1, $1, $2, $3, $4, now())
            ON CONFLICT (id) DO UPDATE SET
                ext_id = EXCLUDED.ext_id,
                name = EXCLUDED.name,
                created_at = COALESCE(EXCLUDED.created_at, guild_metadata.created_at),
                member_count = EXCLUDED.member_count,
                updated_at = now()
            """,
            ext_id,
            name,
            created_at,
            member_count,
        )


class StatisticsDao(Dao):
    async def record_startup(self) -> None:
        await self.db.execute(
            """
            INSERT INTO bot_statistics (id, started_at) VALUES (1, now())
            ON CONFLICT (id) DO UPDATE SET started_at = now()
            """
        )

    async def record_reconciliation(self) -> None:
        await self.db.execute(
            """
            INSERT INTO bot_statistics (id, last_reconciled_at) VALUES (1, now())
            ON CONFLICT (id) DO UPDATE SET last_reconciled_at = now()
            """
        )

    async def fetch(self) -> dict[str, Any] | None:
        row = await self.db.fetchrow(
            "SELECT started_at, last_reconciled_at FROM bot_statistics WHERE id = 1"
        )
        return dict(row) if row else None
