"""Centralized configuration for the ingestion, rule and backfill paths."""
from __future__ import annotations

from dataclasses import dataclass, field

from ..util import bool_env, int_env


@dataclass(frozen=True)
class IngestConfig:
    """Settings for live gateway ingestion."""

    enabled: bool = True
    ignore_bots: bool = False
    reconcile_on_start: bool = True

    @classmethod
    def from_env(cls) -> "IngestConfig":
        return cls(
            enabled=bool_env("INGEST_ENABLED", True),
            ignore_bots=bool_env("INGEST_IGNORE_BOTS", False),
            reconcile_on_start=bool_env("RECONCILE_ON_START", True),
        )


@dataclass(frozen=True)
class RuleEngineConfig:
    """Settings for the rule evaluation worker."""

    enabled: bool = True
    queue_size: int = 1000

    @classmethod
    def from_env(cls) -> "RuleEngineConfig":
        return cls(
            enabled=bool_env("RULES_ENABLED", True),
            queue_size=max(1, int_env("RULE_QUEUE_SIZE", 1000)),
        )


@dataclass(frozen=True)
class BackfillConfig:
    """Settings for the paginated history scan."""

    enabled: bool = False
    page_size: int = 100
    evaluate_rules: bool = True

    @classmethod
    def from_env(cls) -> "BackfillConfig":
        page_size = int_env("BACKFILL_PAGE_SIZE", 100)
        return cls(
            enabled=bool_env("BACKFILL_ENABLED", False),
            # Discord caps history pages at 100 messages
            page_size=min(max(1, page_size), 100),
            evaluate_rules=bool_env("BACKFILL_EVALUATE_RULES", True),
        )


@dataclass
class LakeConfig:
    """Container for all guildlake settings.

    Built once and handed to :class:`guildlake.services.Services` so tests can
    pass their own instance instead of patching the environment.
    """

    ingest: IngestConfig = field(default_factory=IngestConfig.from_env)
    rules: RuleEngineConfig = field(default_factory=RuleEngineConfig.from_env)
    backfill: BackfillConfig = field(default_factory=BackfillConfig.from_env)

    @classmethod
    def from_env(cls) -> "LakeConfig":
        """Create all configs from environment variables."""
        return cls(
            ingest=IngestConfig.from_env(),
            rules=RuleEngineConfig.from_env(),
            backfill=BackfillConfig.from_env(),
        )


# Global default configuration instance
_default_config: LakeConfig | None = None


def get_config() -> LakeConfig:
    """Return the global configuration instance.

    Creates the configuration on first access. This allows for lazy
    loading of environment variables.
    """
    global _default_config
    if _default_config is None:
        _default_config = LakeConfig.from_env()
    return _default_config


def set_config(config: LakeConfig) -> None:
    """Set the global configuration instance."""
    global _default_config
    _default_config = config


def reset_config() -> None:
    """Reset the global configuration to reload from environment."""
    global _default_config
    _default_config = None
