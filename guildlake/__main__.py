"""Entry point to run the guild event lake bot."""
import argparse
import asyncio
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import discord
from discord.ext import commands

from . import bot_config as cfg
from .db import close_pool, get_pool
from .errors import ConfigurationError
from .infra import get_logger
from .postgres_handler import PostgresHandler
from .store import EntityStore
from .util import build_db_url
from .version import get_version

# ─── Logging Setup ─────────────────────────────────────────────────────────
logger = get_logger()
level_name = os.getenv("LOG_LEVEL", "INFO").upper()
level = getattr(logging, level_name, logging.INFO)
logger.setLevel(level)
log_format = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

console_handler = logging.StreamHandler()
console_handler.setFormatter(log_format)
# Console stays at INFO even when LOG_LEVEL is DEBUG
console_handler.setLevel(logging.INFO)

root_logger = logging.getLogger()
root_logger.setLevel(level)
root_logger.addHandler(console_handler)

intents = discord.Intents.default()
intents.message_content = True
intents.members = True
intents.voice_states = True


class LakeBot(commands.Bot):
    async def setup_hook(self) -> None:
        cog_dir = Path(__file__).resolve().parent / "cogs"
        for file in sorted(cog_dir.glob("*_cog.py")):
            await self.load_extension(f"guildlake.cogs.{file.stem}")
        try:
            await EntityStore(await get_pool()).statistics.record_startup()
        except RuntimeError:
            logger.warning("No database configured; startup time not recorded")


bot = LakeBot(command_prefix="!", intents=intents)


@bot.event
async def on_ready() -> None:
    logger.info("%s is now online in %d guild(s)", bot.user, len(bot.guilds))


@bot.event
async def on_error(event: str, *args, **kwargs) -> None:
    logger.exception("Unhandled exception in event %s", event)


async def main() -> None:
    if not cfg.TOKEN:
        raise ConfigurationError("DISCORD_TOKEN is not set")

    logger.info(
        "Starting guildlake in %s environment with level %s",
        cfg.env,
        level_name,
    )
    db_url = build_db_url()
    db_handler = None
    file_handler = None
    if db_url:
        db_handler = PostgresHandler(db_url)
        await db_handler.connect()
        root_logger.addHandler(db_handler)
        logger.info("Postgres logging enabled; file logging disabled")
    else:
        log_dir = Path("logs")
        log_dir.mkdir(exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_dir / "bot.log", when="midnight", backupCount=90
        )
        file_handler.setFormatter(log_format)
        root_logger.addHandler(file_handler)

    try:
        async with bot:
            await bot.start(cfg.TOKEN)
    finally:
        if db_handler:
            root_logger.removeHandler(db_handler)
            await db_handler.aclose()
        if file_handler:
            root_logger.removeHandler(file_handler)
            file_handler.close()
        await close_pool()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the guild event lake")
    parser.add_argument("--version", action="version", version=get_version())
    parser.add_argument(
        "--backfill",
        action="store_true",
        help="Scan channel history after startup reconciliation",
    )
    args = parser.parse_args()
    if args.backfill:
        os.environ["BACKFILL_ENABLED"] = "1"
    asyncio.run(main())
