"""Startup reconciliation of stored state against the live guild.

Phases run in a fixed order and each is idempotent. A failing phase is logged
and skipped; the live handlers keep that entity class current until the next
restart repairs it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..store import EntityStore
from ..store.models import EventType
from ..util import utcnow
from . import normalize
from .channels import ChannelEventHandler
from .persistence import ChannelService, RoleSyncService

log = logging.getLogger(f"guildlake.{__name__}")


@dataclass
class ReconcileReport:
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class Reconciler:
    def __init__(self, store: EntityStore, clock=utcnow) -> None:
        self.store = store
        self.clock = clock

    async def reconcile(self, guild: Any) -> ReconcileReport:
        report = ReconcileReport()
        phases: list[tuple[str, Callable[[Any], Awaitable[Any]]]] = [
            ("guild", self.sync_guild),
            ("members", self.sync_members),
            ("roles", self.sync_roles),
            ("voice", self.sync_voice_sessions),
            ("channels", self.sync_channels),
            ("threads", self.sync_threads),
        ]
        log.info("Reconciling guild %s (%s)", getattr(guild, "name", None), guild.id)
        for name, phase in phases:
            try:
                result = await phase(guild)
            except Exception:
                log.exception("Reconciliation phase %s failed", name)
                report.failed.append(name)
                continue
            log.info("Reconciliation phase %s done: %s", name, result)
            report.completed.append(name)
        try:
            await self.store.statistics.record_reconciliation()
        except Exception:
            log.exception("Failed to record reconciliation time")
        if report.failed:
            log.warning("Reconciliation finished with failed phases: %s", ", ".join(report.failed))
        else:
            log.info("Reconciliation finished")
        return report

    async def sync_guild(self, guild: Any) -> str:
        await self.store.guild.upsert(
            guild.id,
            guild.name,
            getattr(guild, "created_at", None),
            getattr(guild, "member_count", None),
        )
        return guild.name

    async def sync_members(self, guild: Any) -> dict[str, int]:
        """Fetch every member first; only then flip the whole table inactive.

        Doing the network fetch before touching the store keeps the window in
        which everyone looks inactive down to the local writes below.
        """
        members = [m async for m in guild.fetch_members(limit=None)]
        async with self.store.transaction() as tx:
            deactivated = await tx.members.deactivate_all()
            roles = RoleSyncService(tx)
            for member in members:
                profile = normalize.member_profile(member)
                member_id = await tx.members.upsert_full(profile)
                await roles.sync_roles(member_id, profile.roles)
        return {"fetched": len(members), "previously_active": deactivated}

    async def sync_roles(self, guild: Any) -> dict[str, int]:
        stored = await self.store.roles.find_all_active_ext_ids()
        observed = set()
        for role in guild.roles:
            if normalize.is_default_role(role):
                continue
            info = normalize.role_info(role)
            await self.store.roles.upsert(info.ext_id, info.name, info.position)
            observed.add(info.ext_id)
        removed = await self.store.roles.deactivate_by_ext_ids(stored - observed)
        return {"observed": len(observed), "deactivated": removed}

    async def sync_voice_sessions(self, guild: Any) -> dict[str, int]:
        """Close every open session as orphaned, then reopen for who is connected now."""
        now = self.clock()
        opened = 0
        async with self.store.transaction() as tx:
            orphaned = await tx.voice.close_all_orphaned(now)
            channels = ChannelService(tx)
            for channel in list(guild.voice_channels) + list(guild.stage_channels):
                connected = list(getattr(channel, "members", None) or [])
                if not connected:
                    continue
                channel_id = await channels.upsert_channel(normalize.channel_info(channel))
                for member in connected:
                    member_id = await tx.members.upsert(
                        member.id, getattr(member, "name", None) or str(member.id), bool(getattr(member, "bot", False))
                    )
                    event_id = await tx.events.insert(
                        member_id, channel_id, EventType.VOICE_JOIN, now
                    )
                    await tx.voice.open(event_id, member_id, channel_id, now)
                    opened += 1
        return {"orphaned": orphaned, "opened": opened}

    async def sync_channels(self, guild: Any) -> dict[str, int]:
        categories = list(guild.categories)
        channels = [
            c
            for c in guild.channels
            if not normalize.is_category(c) and not normalize.is_thread(c)
        ]

        stored_categories = await self.store.categories.find_all_active_ext_ids()
        stored_channels = await self.store.channels.find_all_active_ext_ids()
        removed = await self.store.categories.deactivate_by_ext_ids(
            stored_categories - {c.id for c in categories}
        )
        removed += await self.store.channels.deactivate_by_ext_ids(
            stored_channels - {c.id for c in channels}
        )

        handler = ChannelEventHandler(self.store)
        for category in categories:
            await handler.upsert(category)
        for channel in channels:
            await handler.channels.upsert_channel(normalize.channel_info(channel))
        return {"categories": len(categories), "channels": len(channels), "deactivated": removed}

    async def sync_threads(self, guild: Any) -> dict[str, int]:
        """Forum tags, then every thread in the live cache.

        Only cached threads are compared. Archived threads the cache does not
        hold are left as they are.
        """
        handler = ChannelEventHandler(self.store)
        tags = 0
        for forum in getattr(guild, "forums", None) or []:
            channel_id = await handler.channels.upsert_channel(normalize.channel_info(forum))
            tags += await handler.sync_forum_tags(forum, channel_id)

        stored = await self.store.threads.find_all_active_ext_ids()
        threads = list(guild.threads)
        for thread in threads:
            await handler.upsert(thread)
        removed = await self.store.threads.deactivate_by_ext_ids(stored - {t.id for t in threads})
        return {"tags": tags, "threads": len(threads), "deactivated": removed}
