"""Voice sessions, the only detail rows updated after creation."""
from __future__ import annotations

from datetime import datetime

from ..util import rows_from_tag
from .base import Dao
from .models import VoiceSessionRow, from_record


class VoiceSessionDao(Dao):
    async def open(self, event_id: int, member_id: int, channel_id: int, joined_at: datetime) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO voice_sessions (event_id, member_id, channel_id, joined_at)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            event_id,
            member_id,
            channel_id,
            joined_at,
        )

    async def close(self, member_id: int, channel_id: int, left_at: datetime) -> int | None:
        """Close the open session in one channel; returns its duration in seconds."""
        return await self.db.fetchval(
            """
            UPDATE voice_sessions
            SET left_at = $3,
                duration_secs = GREATEST(EXTRACT(EPOCH FROM ($3 - joined_at))::bigint, 0)
            WHERE member_id = $1 AND channel_id = $2 AND left_at IS NULL
            RETURNING duration_secs
            """,
            member_id,
            channel_id,
            left_at,
        )

    async def close_all_for_member(self, member_id: int, left_at: datetime) -> int:
        tag = await self.db.execute(
            """
            UPDATE voice_sessions
            SET left_at = $2,
                duration_secs = GREATEST(EXTRACT(EPOCH FROM ($2 - joined_at))::bigint, 0)
            WHERE member_id = $1 AND left_at IS NULL
            """,
            member_id,
            left_at,
        )
        return rows_from_tag(tag)

    async def close_all_orphaned(self, left_at: datetime) -> int:
        tag = await self.db.execute(
            """
            UPDATE voice_sessions
            SET left_at = $1,
                duration_secs = GREATEST(EXTRACT(EPOCH FROM ($1 - joined_at))::bigint, 0)
            WHERE left_at IS NULL
            """,
            left_at,
        )
        return rows_from_tag(tag)

    async def find_open(self, member_id: int) -> list[VoiceSessionRow]:
        rows = await self.db.fetch(
            """
            SELECT id, event_id, member_id, channel_id, joined_at, left_at, duration_secs
            FROM voice_sessions WHERE member_id = $1 AND left_at IS NULL
            """,
            member_id,
        )
        return [from_record(VoiceSessionRow, r) for r in rows]
