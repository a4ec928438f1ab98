import asyncio
import logging

import pytest

import guildlake.__main__ as main
import guildlake.bot_config as cfg
from guildlake.errors import ConfigurationError


class DummyBot:
    def __init__(self):
        self.tokens = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def start(self, token):
        self.tokens.append(token)


def test_main_requires_token(monkeypatch):
    monkeypatch.setattr(cfg, "TOKEN", None)
    with pytest.raises(ConfigurationError):
        asyncio.run(main.main())


def test_main_logs_environment_and_starts_bot(monkeypatch, tmp_path, caplog):
    bot = DummyBot()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cfg, "TOKEN", "token")
    monkeypatch.setattr(cfg, "env", "STAGING")
    monkeypatch.setattr(main, "build_db_url", lambda: None)
    monkeypatch.setattr(main, "bot", bot)
    handlers = list(logging.getLogger().handlers)

    with caplog.at_level(logging.INFO):
        asyncio.run(main.main())

    assert bot.tokens == ["token"]
    assert "Starting guildlake in STAGING environment" in caplog.text
    assert (tmp_path / "logs").is_dir()
    assert logging.getLogger().handlers == handlers
