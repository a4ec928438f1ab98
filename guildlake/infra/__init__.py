"""Infrastructure utilities for guildlake."""
from .cog_base import PoolAwareCog, log_errors, require_pool
from .config import (
    BackfillConfig,
    IngestConfig,
    LakeConfig,
    RuleEngineConfig,
    get_config,
    reset_config,
    set_config,
)
from .logging import (
    get_cog_logger,
    get_logger,
    structured_log,
)
from .transactions import transaction

__all__ = [
    # Cog base classes
    "PoolAwareCog",
    "log_errors",
    "require_pool",
    # Configuration
    "BackfillConfig",
    "IngestConfig",
    "LakeConfig",
    "RuleEngineConfig",
    "get_config",
    "reset_config",
    "set_config",
    # Logging
    "get_cog_logger",
    "get_logger",
    "structured_log",
    # Transactions
    "transaction",
]
