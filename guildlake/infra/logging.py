"""Standardized logging utilities for guildlake."""
from __future__ import annotations

import logging
from typing import Any

# Root logger name for all guildlake components
ROOT_LOGGER_NAME = "guildlake"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a hierarchical logger under the guildlake namespace.

    Args:
        name: Module or component name. If None, returns the root logger.
              The name is prefixed with "guildlake." unless it already
              carries that prefix.

    Example::

        from guildlake.infra.logging import get_logger
        log = get_logger(__name__)  # -> "guildlake.rules.engine"
    """
    if name is None:
        return logging.getLogger(ROOT_LOGGER_NAME)

    clean_name = name
    if clean_name.startswith(f"{ROOT_LOGGER_NAME}."):
        clean_name = clean_name[len(ROOT_LOGGER_NAME) + 1 :]

    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{clean_name}")


def get_cog_logger(cog_name: str) -> logging.Logger:
    """Return a logger under "guildlake.cogs.<cog_name>"."""
    return get_logger(f"cogs.{cog_name}")


def structured_log(
    logger: logging.Logger,
    level: int,
    message: str,
    **fields: Any,
) -> None:
    """Log a message with structured key=value fields appended.

    Example::

        structured_log(log, logging.INFO, "Rule fired", rule_id=3, event_id=9)
        # Logs: "Rule fired rule_id=3 event_id=9"
    """
    if fields:
        field_str = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"{message} {field_str}"
    logger.log(level, message)
