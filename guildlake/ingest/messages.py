"""Message create/edit and reaction add/remove ingestion."""
from __future__ import annotations

import logging
from typing import Any

from ..rules import context as rule_context
from ..rules.context import LIVE
from . import normalize
from .base import IngestHandler
from .persistence import ChannelService, MessagePersistenceService, PersistResult, ThreadService

log = logging.getLogger(f"guildlake.{__name__}")


class MessageIngestionHandler(IngestHandler):
    def __init__(self, store, publish=None, *, ignore_bots: bool = False) -> None:
        super().__init__(store, publish)
        self.ignore_bots = ignore_bots
        self.channels = ChannelService(store)
        self.threads = ThreadService(store, self.channels)
        self.persistence = MessagePersistenceService(store)

    async def _resolve_channel(self, channel: Any) -> tuple[int | None, int | None]:
        """Return ``(channel_id, thread_id)``; thread posts count against their parent."""
        if normalize.is_thread(channel):
            parent = getattr(channel, "parent", None)
            parent_info = normalize.channel_info(parent) if parent is not None else None
            channel_id = await self.channels.upsert_channel(parent_info) if parent_info else None
            thread_id = await self.threads.upsert_thread(
                normalize.thread_info(channel), parent_channel_id=channel_id
            )
            if channel_id is None:
                channel_id = await self.store.channels.find_id_by_ext_id(channel.parent_id)
            return channel_id, thread_id
        return await self.channels.upsert_channel(normalize.channel_info(channel)), None

    async def handle_message(self, message: Any, *, source: str = LIVE) -> PersistResult | None:
        """Persist one message; publish a rule context only the first time it is seen."""
        if getattr(message, "guild", None) is None:
            return None
        author = message.author
        if self.ignore_bots and getattr(author, "bot", False):
            return None

        channel_id, thread_id = await self._resolve_channel(message.channel)
        member_id = await self.store.members.upsert(
            author.id,
            getattr(author, "name", None) or str(author.id),
            bool(getattr(author, "bot", False)),
            activate=source == LIVE,
        )
        row = normalize.message_row(message)
        result = await self.persistence.persist_message(member_id, channel_id, thread_id, row)
        log.debug(
            "Ingested %s message %s (event %s, new=%s)",
            source,
            row.ext_id,
            result.event_id,
            result.created,
        )
        if result.created:
            member = await self.store.members.find_by_id(member_id)
            channel = await self.store.channels.find_by_id(channel_id) if channel_id else None
            self.publish(
                rule_context.for_message(result.event_id, member, channel, row, source=source)
            )
        return result

    async def handle_edit(self, message: Any) -> PersistResult | None:
        """Edits reuse the upsert path; mutable columns are overwritten in place."""
        return await self.handle_message(message)

    async def handle_reaction(self, payload: Any, *, added: bool) -> int | None:
        """Adjust one emoji's count on an archived message.

        Returns the new count, or None when the message is not archived.
        """
        message_id = await self.store.messages.find_id_by_ext_id(payload.message_id)
        if message_id is None:
            log.debug("Reaction on unarchived message %s ignored", payload.message_id)
            return None
        name, ext_id = normalize.emoji_key(payload.emoji)
        async with self.store.transaction() as tx:
            if added:
                count = await tx.reactions.increment(message_id, name, ext_id)
                await tx.messages.adjust_reaction_count(message_id, 1)
            else:
                count = await tx.reactions.decrement(message_id, name, ext_id)
                if count is None:
                    # already at zero or never seen; the total stays put
                    count = await tx.reactions.find_count(message_id, name, ext_id)
                else:
                    await tx.messages.adjust_reaction_count(message_id, -1)
        return count
