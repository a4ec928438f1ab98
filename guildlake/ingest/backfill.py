"""Historical message scan with per-channel watermarks.

Each text channel resumes after the newest message already archived for it,
so re-running the scan only fetches what is missing.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import timedelta
from typing import Any

import discord
from discord.ext import commands

from .. import bot_config as cfg
from ..db import close_pool, get_pool
from ..rules.context import HISTORIC
from ..util import utcnow
from . import normalize
from .messages import MessageIngestionHandler
from .persistence import ChannelService

log = logging.getLogger(f"guildlake.{__name__}")


class HistoricalScanner:
    def __init__(
        self,
        store,
        handler: MessageIngestionHandler,
        page_size: int = 100,
        days: int | None = None,
        clock=utcnow,
    ) -> None:
        self.store = store
        self.handler = handler
        self.page_size = page_size
        self.days = days
        self.clock = clock
        self.channels = ChannelService(store)

    async def _start_after(self, channel_id: int) -> Any:
        watermark = await self.store.messages.latest_ext_id_for_channel(channel_id)
        if watermark is not None:
            return discord.Object(id=watermark)
        if self.days:
            return self.clock() - timedelta(days=self.days)
        return None

    async def scan_channel(self, channel: Any) -> int:
        """Page forward from the watermark until a short page comes back."""
        channel_id = await self.channels.upsert_channel(normalize.channel_info(channel))
        after = await self._start_after(channel_id)
        recorded = 0
        while True:
            page = [
                m
                async for m in channel.history(
                    limit=self.page_size, after=after, oldest_first=True
                )
            ]
            if not page:
                break
            page.sort(key=lambda m: m.id)
            for msg in page:
                try:
                    result = await self.handler.handle_message(msg, source=HISTORIC)
                except Exception as exc:
                    log.exception("Failed to record message %s: %s", msg.id, exc)
                    continue
                if result is not None and result.created:
                    recorded += 1
            if len(page) < self.page_size:
                break
            after = discord.Object(id=page[-1].id)
        return recorded

    async def scan_guild(self, guild: Any) -> dict[str, int]:
        counts = {"channel": 0, "message": 0}
        for channel in guild.text_channels:
            try:
                counts["message"] += await self.scan_channel(channel)
                counts["channel"] += 1
            except discord.Forbidden as exc:
                log.warning(
                    "History fetch failed for channel %s: %s",
                    getattr(channel, "name", channel.id),
                    exc,
                )
            except Exception as exc:
                log.exception(
                    "History fetch failed for channel %s: %s",
                    getattr(channel, "name", channel.id),
                    exc,
                )
        log.info(
            "Backfill of %s scanned %d channels, recorded %d new messages",
            getattr(guild, "name", guild.id),
            counts["channel"],
            counts["message"],
        )
        return counts


class BackfillBot(commands.Bot):
    """Log in, reconcile, scan history, log out."""

    def __init__(self, days: int | None = None, evaluate_rules: bool | None = None):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.voice_states = True
        super().__init__(command_prefix="!", intents=intents)
        self.days = days
        self.evaluate_rules = evaluate_rules
        self.services = None

    async def setup_hook(self) -> None:
        from ..services import Services

        self.services = Services.build(await get_pool(), backfill_days=self.days)
        if self.evaluate_rules is not None:
            self.services.historic_rules = self.evaluate_rules
        await self.services.start()

    async def on_ready(self) -> None:
        log.info("Backfill bot logged in as %s", self.user)
        try:
            for guild in self.guilds:
                await self.services.reconcile(guild)
                await self.services.backfill(guild)
        finally:
            await self.services.stop()
            await self.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill the event lake from channel history")
    parser.add_argument(
        "--days",
        type=int,
        default=int(os.getenv("BACKFILL_DAYS", "0")) or None,
        help="Only fetch this many days back for channels with no archived messages",
    )
    parser.add_argument(
        "--rules",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Evaluate historic rules for backfilled messages",
    )
    return parser.parse_args(argv)


async def run_backfill(days: int | None = None, evaluate_rules: bool | None = None) -> None:
    bot = BackfillBot(days=days, evaluate_rules=evaluate_rules)
    try:
        async with bot:
            await bot.start(cfg.TOKEN)
    finally:
        await close_pool()


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    await run_backfill(args.days, args.rules)


def cli() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())


if __name__ == "__main__":
    cli()
