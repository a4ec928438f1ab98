"""Route gateway events into the event lake."""
from __future__ import annotations

import discord
from discord.ext import commands

from .. import bot_config as cfg
from ..infra import PoolAwareCog, get_cog_logger, get_config, log_errors, require_pool
from ..infra.config import LakeConfig
from ..services import Services

log = get_cog_logger("event_lake")


class EventLakeCog(PoolAwareCog):
    """Persist every guild event and hand it to the rule worker."""

    def __init__(self, bot: commands.Bot, config: LakeConfig | None = None):
        super().__init__(bot)
        self.config = config or get_config()
        self.services: Services | None = None
        self._reconciled = False

    async def cog_load(self) -> None:
        if not self.config.ingest.enabled:
            log.info("INGEST_ENABLED is off; event lake idle")
            return
        await super().cog_load()
        if self.pool is None:
            return
        self.services = Services.build(self.pool, self.config)
        await self.services.start()
        log.info("Event lake ingestion enabled")

    async def cog_unload(self) -> None:
        if self.services is not None:
            await self.services.stop(drain=False)
            self.services = None
        await super().cog_unload()

    def _guilds(self) -> list[discord.Guild]:
        if cfg.GUILD_ID:
            return [g for g in self.bot.guilds if g.id == cfg.GUILD_ID]
        return list(self.bot.guilds)

    @commands.Cog.listener()
    @require_pool
    async def on_ready(self) -> None:
        """Reconcile once per process; reconnects fire on_ready again."""
        if self._reconciled:
            return
        self._reconciled = True
        for guild in self._guilds():
            if self.config.ingest.reconcile_on_start:
                try:
                    await self.services.reconcile(guild)
                except Exception:
                    log.exception("Reconciliation of %s failed", guild.name)
            if self.config.backfill.enabled:
                try:
                    await self.services.backfill(guild)
                except Exception:
                    log.exception("Backfill of %s failed", guild.name)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest message")
    async def on_message(self, message: discord.Message) -> None:
        await self.services.ingest_message(message)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest message edit")
    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        await self.services.ingest_message_edit(after)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record reaction add")
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        await self.services.ingest_reaction(payload, added=True)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record reaction remove")
    async def on_raw_reaction_remove(self, payload: discord.RawReactionActionEvent) -> None:
        await self.services.ingest_reaction(payload, added=False)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest member join")
    async def on_member_join(self, member: discord.Member) -> None:
        await self.services.ingest_member_join(member)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest member leave")
    async def on_raw_member_remove(self, payload: discord.RawMemberRemoveEvent) -> None:
        await self.services.ingest_member_leave(payload.user)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest member update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        await self.services.ingest_member_update(after)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to ingest voice state")
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        await self.services.ingest_voice_state(member, before, after)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record channel create")
    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        await self.services.ingest_channel_create(channel)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record channel update")
    async def on_guild_channel_update(
        self, before: discord.abc.GuildChannel, after: discord.abc.GuildChannel
    ) -> None:
        await self.services.ingest_channel_update(before, after)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record channel delete")
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        await self.services.ingest_channel_delete(channel)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record thread create")
    async def on_thread_create(self, thread: discord.Thread) -> None:
        await self.services.ingest_channel_create(thread)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record thread update")
    async def on_thread_update(self, before: discord.Thread, after: discord.Thread) -> None:
        await self.services.ingest_channel_update(before, after)

    @commands.Cog.listener()
    @require_pool
    @log_errors("Failed to record thread delete")
    async def on_raw_thread_delete(self, payload: discord.RawThreadDeleteEvent) -> None:
        await self.services.ingest_thread_delete(payload.thread_id)


async def setup(bot: commands.Bot):
    await bot.add_cog(EventLakeCog(bot))
