"""
Source of truth for the token and guild id
==========================================
Supports **multi-env** (TEST vs PROD) so the lake can be pointed at a sandbox
guild first, then flipped over when deployed.

Usage
-----
$ export env=TEST  # or PROD (default PROD)
$ python -m guildlake

* .env (git-ignored) keeps the token *
DISCORD_TOKEN=xxx
GUILD_ID=1234
"""
from __future__ import annotations
import os
import logging
from .util import int_env
from dotenv import load_dotenv
load_dotenv()

# ─── Select env ────────────────────────────────────────────────────────────
env = os.getenv("env", "prod").upper()
IS_TEST = env == "TEST"

# ─── Tokens ───────────────────────────────────────────────────────────────
TOKEN = os.getenv("DISCORD_TOKEN")

# ─── Guild ────────────────────────────────────────────────────────────────
GUILD_ID = int_env("GUILD_ID_TEST" if IS_TEST else "GUILD_ID", 0)

logging.getLogger(f"guildlake.{__name__}").info(
    "Loaded %s env for guild %s", env, GUILD_ID or "unset"
)
