"""Structural changes: channels, categories, threads and forum tags."""
from __future__ import annotations

import logging
from typing import Any

from . import normalize
from .persistence import ChannelService, ThreadService

log = logging.getLogger(f"guildlake.{__name__}")


class ChannelEventHandler:
    def __init__(self, store) -> None:
        self.store = store
        self.channels = ChannelService(store)
        self.threads = ThreadService(store, self.channels)

    async def upsert(self, channel: Any) -> int:
        """Create-or-refresh any channel-like object; returns its internal id."""
        if normalize.is_category(channel):
            return await self.store.categories.upsert(
                channel.id, getattr(channel, "name", None), getattr(channel, "position", None)
            )
        if normalize.is_thread(channel):
            parent = getattr(channel, "parent", None)
            return await self.threads.upsert_thread(
                normalize.thread_info(channel),
                normalize.channel_info(parent) if parent is not None else None,
            )
        channel_id = await self.channels.upsert_channel(normalize.channel_info(channel))
        await self.sync_forum_tags(channel, channel_id)
        return channel_id

    async def sync_forum_tags(self, channel: Any, channel_id: int) -> int:
        tags = getattr(channel, "available_tags", None) or []
        for tag in tags:
            await self.store.forum_tags.upsert(normalize.forum_tag_info(tag), channel_id)
        return len(tags)

    async def handle_create(self, channel: Any) -> int:
        channel_id = await self.upsert(channel)
        log.info(
            "Recorded new %s: %s (%s)",
            normalize.channel_type(channel) or "channel",
            getattr(channel, "name", None),
            channel.id,
        )
        return channel_id

    async def handle_delete(self, channel: Any) -> None:
        if normalize.is_category(channel):
            await self.store.categories.mark_inactive(channel.id)
        elif normalize.is_thread(channel):
            await self.store.threads.mark_inactive(channel.id)
        else:
            await self.store.channels.mark_inactive(channel.id)
        log.info(
            "Deactivated deleted %s: %s (%s)",
            normalize.channel_type(channel) or "channel",
            getattr(channel, "name", None),
            channel.id,
        )

    async def handle_thread_delete(self, thread_id: int) -> None:
        await self.store.threads.mark_inactive(thread_id)
        log.info("Deactivated deleted thread %s", thread_id)

    async def handle_update(self, before: Any, after: Any) -> int:
        """Renames, category moves and archive/lock toggles all refresh the row."""
        changes = []
        for attr in ("name", "category_id", "parent_id", "archived", "locked"):
            old, new = getattr(before, attr, None), getattr(after, attr, None)
            if old != new:
                changes.append(f"{attr}: {old} -> {new}")
        channel_id = await self.upsert(after)
        if changes:
            log.info("Updated %s (%s): %s", getattr(after, "name", None), after.id, "; ".join(changes))
        return channel_id
