"""Voice join, leave and move ingestion."""
from __future__ import annotations

import logging
from typing import Any

from ..rules import context as rule_context
from ..store.models import EventType
from . import normalize
from .base import IngestHandler
from .persistence import ChannelService

log = logging.getLogger(f"guildlake.{__name__}")


class VoiceEventHandler(IngestHandler):
    """Keeps at most one open session per member and channel.

    A move closes the old session before opening the new one, and a join
    closes any session left open in the same channel by a missed leave.
    """

    async def handle_voice_state(self, member: Any, before: Any, after: Any) -> int | None:
        old = getattr(before, "channel", None)
        new = getattr(after, "channel", None)
        old_id = getattr(old, "id", None)
        new_id = getattr(new, "id", None)
        if old_id == new_id:
            # mute, deafen and stream toggles
            return None
        if old is None:
            return await self._join(member, new)
        if new is None:
            return await self._leave(member, old)
        return await self._move(member, old, new)

    async def _member_id(self, tx, member: Any) -> int:
        return await tx.members.upsert(
            member.id, getattr(member, "name", None) or str(member.id), bool(getattr(member, "bot", False))
        )

    async def _publish(self, event_type: str, event_id: int, member_id: int, channel_id: int, duration=None, now=None) -> None:
        row = await self.store.members.find_by_id(member_id)
        channel = await self.store.channels.find_by_id(channel_id)
        self.publish(
            rule_context.for_voice_event(
                event_type,
                event_id,
                row,
                channel,
                session_duration_secs=duration,
                created_at=now,
            )
        )

    async def _join(self, member: Any, channel: Any) -> int:
        now = self.clock()
        async with self.store.transaction() as tx:
            member_id = await self._member_id(tx, member)
            channel_id = await ChannelService(tx).upsert_channel(normalize.channel_info(channel))
            await tx.voice.close(member_id, channel_id, now)
            event_id = await tx.events.insert(member_id, channel_id, EventType.VOICE_JOIN, now)
            await tx.voice.open(event_id, member_id, channel_id, now)
        log.debug("Voice join: %s -> %s", member.id, channel.id)
        await self._publish(EventType.VOICE_JOIN, event_id, member_id, channel_id, now=now)
        return event_id

    async def _leave(self, member: Any, channel: Any) -> int:
        now = self.clock()
        async with self.store.transaction() as tx:
            member_id = await self._member_id(tx, member)
            channel_id = await ChannelService(tx).upsert_channel(normalize.channel_info(channel))
            duration = await tx.voice.close(member_id, channel_id, now)
            event_id = await tx.events.insert(member_id, channel_id, EventType.VOICE_LEAVE, now)
        log.debug("Voice leave: %s <- %s (%ss)", member.id, channel.id, duration)
        await self._publish(
            EventType.VOICE_LEAVE, event_id, member_id, channel_id, duration=duration, now=now
        )
        return event_id

    async def _move(self, member: Any, old: Any, new: Any) -> int:
        now = self.clock()
        async with self.store.transaction() as tx:
            member_id = await self._member_id(tx, member)
            channels = ChannelService(tx)
            old_id = await channels.upsert_channel(normalize.channel_info(old))
            new_id = await channels.upsert_channel(normalize.channel_info(new))
            await tx.voice.close(member_id, old_id, now)
            event_id = await tx.events.insert(member_id, new_id, EventType.VOICE_MOVE, now)
            await tx.voice.open(event_id, member_id, new_id, now)
        log.debug("Voice move: %s %s -> %s", member.id, old.id, new.id)
        await self._publish(EventType.VOICE_MOVE, event_id, member_id, new_id, now=now)
        return event_id
