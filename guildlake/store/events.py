"""The event lake parent table."""
from __future__ import annotations

from datetime import datetime

from .base import Dao


class EventDao(Dao):
    async def insert(
        self,
        member_id: int,
        channel_id: int | None,
        event_type: str,
        created_at: datetime | None = None,
    ) -> int:
        """Append one event; ``created_at`` falls back to the database clock."""
        return await self.db.fetchval(
            """
            INSERT INTO events (member_id, channel_id, event_type, created_at)
            VALUES ($1, $2, $3, COALESCE($4::timestamptz, now()))
            RETURNING id
            """,
            member_id,
            channel_id,
            event_type,
            created_at,
        )

    async def delete(self, event_id: int) -> None:
        await self.db.execute("DELETE FROM events WHERE id = $1", event_id)

    async def find_created_at(self, event_id: int) -> datetime | None:
        return await self.db.fetchval("SELECT created_at FROM events WHERE id = $1", event_id)

    async def count_by_member_and_type(self, member_id: int, event_type: str) -> int:
        count = await self.db.fetchval(
            "SELECT COUNT(*) FROM events WHERE member_id = $1 AND event_type = $2",
            member_id,
            event_type,
        )
        return int(count or 0)
