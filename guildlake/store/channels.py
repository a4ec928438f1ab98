"""Categories, channels, threads and forum tags."""
from __future__ import annotations

from typing import Iterable

from .base import Dao, SoftDeleteMixin
from .models import ChannelRow, ForumTagInfo, ThreadInfo, from_record


class CategoryDao(SoftDeleteMixin, Dao):
    table = "categories"

    async def upsert(self, ext_id: int, name: str | None, position: int | None = None) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO categories (ext_id, name, position, is_active)
            VALUES ($1, $2, $3, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                name = COALESCE(EXCLUDED.name, categories.name),
                position = COALESCE(EXCLUDED.position, categories.position),
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            ext_id,
            name,
            position,
        )


class ChannelDao(SoftDeleteMixin, Dao):
    table = "channels"

    async def upsert(
        self,
        ext_id: int,
        name: str | None,
        type: str | None,
        position: int | None = None,
        category_id: int | None = None,
    ) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO channels (ext_id, name, type, position, category_id, is_active)
            VALUES ($1, $2, $3, $4, $5, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                name = EXCLUDED.name,
                type = EXCLUDED.type,
                position = EXCLUDED.position,
                category_id = EXCLUDED.category_id,
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            ext_id,
            name,
            type,
            position,
            category_id,
        )

    async def find_id_by_ext_id(self, ext_id: int) -> int | None:
        return await self.db.fetchval("SELECT id FROM channels WHERE ext_id = $1", ext_id)

    async def find_by_id(self, channel_id: int) -> ChannelRow | None:
        row = await self.db.fetchrow(
            """
            SELECT c.id, c.ext_id, c.name, c.type, c.is_active,
                   cat.ext_id AS category_ext_id
            FROM channels c
            LEFT JOIN categories cat ON cat.id = c.category_id
            WHERE c.id = $1
            """,
            channel_id,
        )
        return from_record(ChannelRow, row)


class ThreadDao(SoftDeleteMixin, Dao):
    table = "threads"

    async def upsert(self, thread: ThreadInfo, channel_id: int | None) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO threads (
                ext_id, channel_id, owner_ext_id, name, type, is_archived,
                is_locked, is_pinned, message_count, slowmode,
                auto_archive_duration, is_active
            )
            VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                channel_id = EXCLUDED.channel_id,
                name = EXCLUDED.name,
                type = EXCLUDED.type,
                is_archived = EXCLUDED.is_archived,
                is_locked = EXCLUDED.is_locked,
                is_pinned = EXCLUDED.is_pinned,
                message_count = EXCLUDED.message_count,
                slowmode = EXCLUDED.slowmode,
                auto_archive_duration = EXCLUDED.auto_archive_duration,
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            thread.ext_id,
            channel_id,
            thread.owner_ext_id,
            thread.name,
            thread.type,
            thread.is_archived,
            thread.is_locked,
            thread.is_pinned,
            thread.message_count,
            thread.slowmode,
            thread.auto_archive_duration,
        )


class ForumTagDao(SoftDeleteMixin, Dao):
    table = "forum_tags"

    async def upsert(self, tag: ForumTagInfo, channel_id: int) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO forum_tags (
                ext_id, channel_id, name, emoji_name, emoji_ext_id, is_moderated, is_active
            )
            VALUES ($1, $2, $3, $4, $5, $6, TRUE)
            ON CONFLICT (ext_id) DO UPDATE SET
                channel_id = EXCLUDED.channel_id,
                name = EXCLUDED.name,
                emoji_name = EXCLUDED.emoji_name,
                emoji_ext_id = EXCLUDED.emoji_ext_id,
                is_moderated = EXCLUDED.is_moderated,
                is_active = TRUE,
                updated_at = now()
            RETURNING id
            """,
            tag.ext_id,
            channel_id,
            tag.name,
            tag.emoji_name,
            tag.emoji_ext_id,
            tag.is_moderated,
        )

    async def find_ids_by_ext_ids(self, ext_ids: Iterable[int]) -> list[int]:
        ids = list(ext_ids)
        if not ids:
            return []
        rows = await self.db.fetch(
            "SELECT id FROM forum_tags WHERE ext_id = ANY($1::bigint[])", ids
        )
        return [r["id"] for r in rows]


class ThreadTagDao(Dao):
    async def replace(self, thread_id: int, tag_ids: Iterable[int]) -> None:
        await self.db.execute("DELETE FROM thread_tags WHERE thread_id = $1", thread_id)
        rows = [(thread_id, tag_id) for tag_id in tag_ids]
        if rows:
            await self.db.executemany(
                "INSERT INTO thread_tags (thread_id, tag_id) VALUES ($1, $2) ON CONFLICT DO NOTHING",
                rows,
            )
