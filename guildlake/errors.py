"""Exception types raised inside guildlake."""
from __future__ import annotations


class GuildLakeError(Exception):
    """Base class for guildlake failures."""


class ConfigurationError(GuildLakeError):
    """Raised at startup when a required setting is missing."""


class PredicateParameterError(GuildLakeError, ValueError):
    """Raised when a predicate's JSON parameters cannot be used."""

    def __init__(self, predicate_type: str, detail: str) -> None:
        super().__init__(f"{predicate_type}: {detail}")
        self.predicate_type = predicate_type
        self.detail = detail
