"""Message detail rows plus their attachment and reaction children."""
from __future__ import annotations

from typing import Iterable

from .base import Dao
from .models import AttachmentRow, MessageRow, ReactionRow


class MessageDao(Dao):
    async def upsert(self, event_id: int, thread_id: int | None, msg: MessageRow) -> tuple[int, int]:
        """Insert the detail row or refresh its mutable columns.

        Returns ``(message_id, event_id)``. On conflict the stored event id is
        returned, which differs from ``event_id`` when the message was already
        archived.
        """
        row = await self.db.fetchrow(
            """
            INSERT INTO messages (
                event_id, ext_id, thread_id, flags, content_length, type,
                attachment_count, reaction_count, mention_user_count,
                mention_role_count, mention_channel_count, embed_count,
                content, referenced_message_ext_id, edited_at, is_reply,
                spawned_thread, has_attachments, mention_everyone, is_tts,
                is_pinned, has_stickers, has_poll, is_voice_message,
                author_is_bot
            )
            VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10,$11,$12,$13,$14,$15,$16,
                    $17,$18,$19,$20,$21,$22,$23,$24,$25)
            ON CONFLICT (ext_id) DO UPDATE SET
                thread_id = COALESCE(EXCLUDED.thread_id, messages.thread_id),
                flags = EXCLUDED.flags,
                content_length = EXCLUDED.content_length,
                attachment_count = EXCLUDED.attachment_count,
                reaction_count = EXCLUDED.reaction_count,
                mention_user_count = EXCLUDED.mention_user_count,
                mention_role_count = EXCLUDED.mention_role_count,
                mention_channel_count = EXCLUDED.mention_channel_count,
                embed_count = EXCLUDED.embed_count,
                content = EXCLUDED.content,
                edited_at = EXCLUDED.edited_at,
                spawned_thread = EXCLUDED.spawned_thread,
                has_attachments = EXCLUDED.has_attachments,
                mention_everyone = EXCLUDED.mention_everyone,
                is_tts = EXCLUDED.is_tts,
                is_pinned = EXCLUDED.is_pinned,
                has_stickers = EXCLUDED.has_stickers,
                has_poll = EXCLUDED.has_poll,
                is_voice_message = EXCLUDED.is_voice_message,
                updated_at = now()
            RETURNING id, event_id
            """,
            event_id,
            msg.ext_id,
            thread_id,
            msg.flags,
            msg.content_length,
            msg.type,
            msg.attachment_count,
            msg.reaction_count,
            msg.mention_user_count,
            msg.mention_role_count,
            msg.mention_channel_count,
            msg.embed_count,
            msg.content,
            msg.referenced_message_ext_id,
            msg.edited_at,
            msg.is_reply,
            msg.spawned_thread,
            msg.has_attachments,
            msg.mention_everyone,
            msg.is_tts,
            msg.is_pinned,
            msg.has_stickers,
            msg.has_poll,
            msg.is_voice_message,
            msg.author_is_bot,
        )
        return row["id"], row["event_id"]

    async def find_id_by_ext_id(self, ext_id: int) -> int | None:
        return await self.db.fetchval("SELECT id FROM messages WHERE ext_id = $1", ext_id)

    async def latest_ext_id_for_channel(self, channel_id: int) -> int | None:
        """Highest archived message id in a channel, the backfill watermark."""
        return await self.db.fetchval(
            """
            SELECT MAX(m.ext_id) FROM messages m
            JOIN events e ON e.id = m.event_id
            WHERE e.channel_id = $1 AND m.thread_id IS NULL
            """,
            channel_id,
        )

    async def adjust_reaction_count(self, message_id: int, delta: int) -> None:
        await self.db.execute(
            "UPDATE messages SET reaction_count = GREATEST(reaction_count + $2, 0) WHERE id = $1",
            message_id,
            delta,
        )


class AttachmentDao(Dao):
    async def replace(self, message_id: int, attachments: Iterable[AttachmentRow]) -> None:
        await self.db.execute(
            "DELETE FROM message_attachments WHERE message_id = $1", message_id
        )
        rows = [
            (
                message_id,
                a.ext_id,
                a.filename,
                a.description,
                a.content_type,
                a.size,
                a.width,
                a.height,
                a.duration_secs,
            )
            for a in attachments
        ]
        if rows:
            await self.db.executemany(
                """
                INSERT INTO message_attachments (
                    message_id, ext_id, filename, description, content_type,
                    size, width, height, duration_secs
                )
                VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9)
                """,
                rows,
            )


class ReactionDao(Dao):
    async def replace(self, message_id: int, reactions: Iterable[ReactionRow]) -> None:
        await self.db.execute(
            "DELETE FROM message_reactions WHERE message_id = $1", message_id
        )
        rows = [
            (message_id, r.emoji_name, r.emoji_ext_id, r.count, r.burst_count)
            for r in reactions
        ]
        if rows:
            await self.db.executemany(
                """
                INSERT INTO message_reactions (message_id, emoji_name, emoji_ext_id, count, burst_count)
                VALUES ($1, $2, $3, $4, $5)
                """,
                rows,
            )

    async def increment(self, message_id: int, emoji_name: str, emoji_ext_id: int | None) -> int:
        """Create the row with count 1 or add one to it."""
        return await self.db.fetchval(
            """
            INSERT INTO message_reactions (message_id, emoji_name, emoji_ext_id, count, burst_count)
            VALUES ($1, $2, $3, 1, 0)
            ON CONFLICT (message_id, emoji_name, (COALESCE(emoji_ext_id, 0)))
            DO UPDATE SET count = message_reactions.count + 1
            RETURNING count
            """,
            message_id,
            emoji_name,
            emoji_ext_id,
        )

    async def decrement(self, message_id: int, emoji_name: str, emoji_ext_id: int | None) -> int | None:
        """Subtract one from a positive count.

        Returns the new count, or None when nothing was subtracted because the
        row is missing or already at zero.
        """
        return await self.db.fetchval(
            """
            UPDATE message_reactions SET count = count - 1
            WHERE message_id = $1 AND emoji_name = $2
              AND COALESCE(emoji_ext_id, 0) = COALESCE($3::bigint, 0)
              AND count > 0
            RETURNING count
            """,
            message_id,
            emoji_name,
            emoji_ext_id,
        )

    async def find_count(self, message_id: int, emoji_name: str, emoji_ext_id: int | None) -> int | None:
        return await self.db.fetchval(
            """
            SELECT count FROM message_reactions
            WHERE message_id = $1 AND emoji_name = $2
              AND COALESCE(emoji_ext_id, 0) = COALESCE($3::bigint, 0)
            """,
            message_id,
            emoji_name,
            emoji_ext_id,
        )
