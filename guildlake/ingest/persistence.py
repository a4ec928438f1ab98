"""Store writes shared by the live handlers, the reconciler and backfill."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ..store import EntityStore
from ..store.models import ChannelInfo, EventType, MessageRow, RoleInfo, ThreadInfo

log = logging.getLogger(f"guildlake.{__name__}")


@dataclass(frozen=True)
class PersistResult:
    event_id: int
    message_id: int
    created: bool


class MessagePersistenceService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def persist_message(
        self,
        member_id: int,
        channel_id: int | None,
        thread_id: int | None,
        message: MessageRow,
    ) -> PersistResult:
        """Write event, detail, attachments and reactions in one transaction.

        A message seen before keeps its original event: the event row inserted
        here is removed again inside the same transaction and ``created`` is
        False, so re-delivery and edits never add a second event.
        """
        async with self.store.transaction() as tx:
            new_event_id = await tx.events.insert(
                member_id, channel_id, EventType.MESSAGE_CREATE, message.created_at
            )
            message_id, event_id = await tx.messages.upsert(new_event_id, thread_id, message)
            created = event_id == new_event_id
            if not created:
                await tx.events.delete(new_event_id)
            if message.attachments:
                await tx.attachments.replace(message_id, message.attachments)
            if message.reactions:
                await tx.reactions.replace(message_id, message.reactions)
        return PersistResult(event_id=event_id, message_id=message_id, created=created)


class ChannelService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def upsert_channel(self, channel: ChannelInfo) -> int:
        """Upsert the parent category first, then the channel itself."""
        category_id = None
        if channel.category_ext_id is not None:
            category_id = await self.store.categories.upsert(
                channel.category_ext_id, channel.category_name
            )
        return await self.store.channels.upsert(
            channel.ext_id, channel.name, channel.type, channel.position, category_id
        )


class ThreadService:
    def __init__(self, store: EntityStore, channels: ChannelService | None = None) -> None:
        self.store = store
        self.channels = channels or ChannelService(store)

    async def upsert_thread(
        self,
        thread: ThreadInfo,
        parent: ChannelInfo | None = None,
        *,
        parent_channel_id: int | None = None,
    ) -> int:
        """Resolve the parent channel, upsert the thread, then replace its tags.

        Only forum posts carry tags; other threads leave the junction untouched.
        """
        if parent_channel_id is None:
            if parent is not None:
                parent_channel_id = await self.channels.upsert_channel(parent)
            elif thread.parent_ext_id is not None:
                parent_channel_id = await self.store.channels.find_id_by_ext_id(thread.parent_ext_id)
        thread_id = await self.store.threads.upsert(thread, parent_channel_id)
        if thread.tag_ext_ids:
            tag_ids = await self.store.forum_tags.find_ids_by_ext_ids(thread.tag_ext_ids)
            await self.store.thread_tags.replace(thread_id, tag_ids)
        return thread_id


class RoleSyncService:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def sync_roles(self, member_id: int, roles: Iterable[RoleInfo]) -> list[int]:
        """Upsert each role, then swap the member's junction rows for this set."""
        role_ids = []
        for role in roles:
            role_ids.append(await self.store.roles.upsert(role.ext_id, role.name, role.position))
        await self.store.member_roles.replace(member_id, role_ids)
        return role_ids
