"""Explicitly wired owner of the store, handlers, reconciler and rule worker."""
from __future__ import annotations

import logging
from typing import Any

from .infra.config import LakeConfig, get_config
from .ingest.backfill import HistoricalScanner
from .ingest.channels import ChannelEventHandler
from .ingest.members import MemberEventHandler
from .ingest.messages import MessageIngestionHandler
from .ingest.reconcile import Reconciler, ReconcileReport
from .ingest.voice import VoiceEventHandler
from .rules.context import RuleContext
from .rules.engine import RuleEngine
from .rules.queue import RuleEvaluationQueue
from .store import EntityStore
from .util import utcnow

log = logging.getLogger(f"guildlake.{__name__}")


class Services:
    def __init__(
        self,
        store: EntityStore,
        config: LakeConfig | None = None,
        *,
        engine: RuleEngine | None = None,
        backfill_days: int | None = None,
        clock=utcnow,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self.historic_rules = self.config.backfill.evaluate_rules
        self.engine = engine or RuleEngine(store, clock=clock)
        self.queue = RuleEvaluationQueue(self.engine, self.config.rules.queue_size)

        publish = self.publish if self.config.rules.enabled else None
        ignore_bots = self.config.ingest.ignore_bots
        self.messages = MessageIngestionHandler(store, publish, ignore_bots=ignore_bots)
        self.members = MemberEventHandler(store, publish, clock)
        self.voice = VoiceEventHandler(store, publish, clock)
        self.channels = ChannelEventHandler(store)
        self.reconciler = Reconciler(store, clock)
        self.scanner = HistoricalScanner(
            store,
            self.messages,
            page_size=self.config.backfill.page_size,
            days=backfill_days,
            clock=clock,
        )

    @classmethod
    def build(cls, pool: Any, config: LakeConfig | None = None, **kwargs: Any) -> "Services":
        return cls(EntityStore(pool), config, **kwargs)

    def publish(self, ctx: RuleContext) -> bool:
        if ctx.is_historic and not self.historic_rules:
            return False
        return self.queue.publish(ctx)

    async def start(self) -> None:
        if self.config.rules.enabled:
            self.queue.start()

    async def stop(self, *, drain: bool = True) -> None:
        """Stop the rule worker, first letting it finish queued contexts."""
        if drain and self.queue.running:
            await self.queue.join()
        await self.queue.stop()

    async def reconcile(self, guild: Any) -> ReconcileReport:
        return await self.reconciler.reconcile(guild)

    async def backfill(self, guild: Any) -> dict[str, int]:
        return await self.scanner.scan_guild(guild)

    # gateway entry points, all idempotent for the same external id
    async def ingest_message(self, message: Any):
        return await self.messages.handle_message(message)

    async def ingest_message_edit(self, message: Any):
        return await self.messages.handle_edit(message)

    async def ingest_reaction(self, payload: Any, *, added: bool):
        return await self.messages.handle_reaction(payload, added=added)

    async def ingest_member_join(self, member: Any):
        return await self.members.handle_join(member)

    async def ingest_member_leave(self, user: Any):
        return await self.members.handle_leave(user)

    async def ingest_member_update(self, member: Any):
        return await self.members.handle_update(member)

    async def ingest_voice_state(self, member: Any, before: Any, after: Any):
        return await self.voice.handle_voice_state(member, before, after)

    async def ingest_channel_create(self, channel: Any):
        return await self.channels.handle_create(channel)

    async def ingest_channel_update(self, before: Any, after: Any):
        return await self.channels.handle_update(before, after)

    async def ingest_channel_delete(self, channel: Any):
        return await self.channels.handle_delete(channel)

    async def ingest_thread_delete(self, thread_id: int):
        return await self.channels.handle_thread_delete(thread_id)
