"""Tests for infrastructure modules."""
from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import RecordingPool

from guildlake.infra import (
    PoolAwareCog,
    get_logger,
    log_errors,
    require_pool,
    transaction,
)
from guildlake.infra.logging import get_cog_logger, structured_log


# --- Logging Tests ---


def test_get_logger_with_name() -> None:
    """get_logger returns a logger with guildlake prefix."""
    logger = get_logger("my_module")
    assert logger.name == "guildlake.my_module"


def test_get_logger_without_name() -> None:
    logger = get_logger()
    assert logger.name == "guildlake"


def test_get_logger_avoids_double_prefix() -> None:
    logger = get_logger("guildlake.rules.engine")
    assert logger.name == "guildlake.rules.engine"


def test_get_cog_logger() -> None:
    logger = get_cog_logger("event_lake")
    assert logger.name == "guildlake.cogs.event_lake"


def test_structured_log(caplog: pytest.LogCaptureFixture) -> None:
    """structured_log appends key=value pairs to message."""
    logger = get_logger("test_structured")
    with caplog.at_level(logging.INFO):
        structured_log(logger, logging.INFO, "Rule fired", rule="greeter", event_id=9)
    assert "Rule fired rule=greeter event_id=9" in caplog.text


# --- Transaction Tests ---


@pytest.mark.asyncio
async def test_transaction_yields_connection() -> None:
    pool = RecordingPool()
    async with transaction(pool) as conn:
        await conn.execute("SELECT 1")
    assert conn is pool
    assert pool.transactions == 1


# --- PoolAwareCog Tests ---


class SampleCog(PoolAwareCog):
    @require_pool
    async def method_requiring_pool(self) -> str:
        return "pool available"

    @log_errors("Sample operation failed")
    async def method_with_error(self) -> None:
        raise ValueError("sample error")

    @log_errors("Recoverable error", return_value="fallback")
    async def method_with_fallback(self) -> str:
        raise ValueError("recoverable")

    @log_errors("Fatal error", reraise=True)
    async def method_reraises(self) -> None:
        raise ValueError("fatal")


@pytest.fixture
def mock_bot() -> MagicMock:
    return MagicMock()


@pytest.mark.asyncio
async def test_pool_aware_cog_load_success(mock_bot: MagicMock) -> None:
    cog = SampleCog(mock_bot)
    mock_pool = AsyncMock()

    with patch("guildlake.infra.cog_base.get_pool", return_value=mock_pool):
        await cog.cog_load()

    assert cog.pool is mock_pool
    assert cog.has_pool is True


@pytest.mark.asyncio
async def test_pool_aware_cog_load_failure(mock_bot: MagicMock, caplog) -> None:
    """cog_load handles missing database gracefully."""
    cog = SampleCog(mock_bot)

    with patch("guildlake.infra.cog_base.get_pool", side_effect=RuntimeError("PG_DSN missing")):
        await cog.cog_load()

    assert cog.pool is None
    assert cog.has_pool is False
    assert "SampleCog: database pool unavailable" in caplog.text
    assert "events will not be stored" in caplog.text
    assert await cog.method_requiring_pool() is None


@pytest.mark.asyncio
async def test_require_pool(mock_bot: MagicMock) -> None:
    cog = SampleCog(mock_bot)
    assert await cog.method_requiring_pool() is None
    cog.pool = AsyncMock()
    assert await cog.method_requiring_pool() == "pool available"
    await cog.cog_unload()
    assert cog.pool is None


@pytest.mark.asyncio
async def test_log_errors(mock_bot: MagicMock, caplog) -> None:
    cog = SampleCog(mock_bot)
    assert await cog.method_with_error() is None
    assert "Sample operation failed in method_with_error" in caplog.text
    assert await cog.method_with_fallback() == "fallback"
    with pytest.raises(ValueError):
        await cog.method_reraises()
