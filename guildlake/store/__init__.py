"""Entity store: DAO classes over the guildlake Postgres schema."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from ..infra.transactions import transaction
from .channels import CategoryDao, ChannelDao, ForumTagDao, ThreadDao, ThreadTagDao
from .events import EventDao
from .guild import GuildMetadataDao, StatisticsDao
from .members import MemberDao, MemberRoleDao, RoleChangeDao, RoleDao
from .messages import AttachmentDao, MessageDao, ReactionDao
from .rules import (
    RuleDao,
    RuleEvaluationDao,
    RuleOutcomeDao,
    RulePredicateDao,
    SeasonDao,
)
from .voice import VoiceSessionDao


class EntityStore:
    """Every DAO, bound to one pool or connection.

    ``store.transaction()`` yields a copy whose DAOs all share one
    transactional connection.
    """

    def __init__(self, db: Any) -> None:
        self.db = db
        self.guild = GuildMetadataDao(db)
        self.statistics = StatisticsDao(db)
        self.members = MemberDao(db)
        self.roles = RoleDao(db)
        self.member_roles = MemberRoleDao(db)
        self.role_changes = RoleChangeDao(db)
        self.categories = CategoryDao(db)
        self.channels = ChannelDao(db)
        self.threads = ThreadDao(db)
        self.forum_tags = ForumTagDao(db)
        self.thread_tags = ThreadTagDao(db)
        self.events = EventDao(db)
        self.messages = MessageDao(db)
        self.attachments = AttachmentDao(db)
        self.reactions = ReactionDao(db)
        self.voice = VoiceSessionDao(db)
        self.rules = RuleDao(db)
        self.predicates = RulePredicateDao(db)
        self.outcomes = RuleOutcomeDao(db)
        self.evaluations = RuleEvaluationDao(db)
        self.seasons = SeasonDao(db)

    def bind(self, db: Any) -> "EntityStore":
        return type(self)(db)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["EntityStore"]:
        async with transaction(self.db) as conn:
            yield self.bind(conn)


__all__ = [
    "AttachmentDao",
    "CategoryDao",
    "ChannelDao",
    "EntityStore",
    "EventDao",
    "ForumTagDao",
    "GuildMetadataDao",
    "MemberDao",
    "MemberRoleDao",
    "MessageDao",
    "ReactionDao",
    "RoleChangeDao",
    "RoleDao",
    "RuleDao",
    "RuleEvaluationDao",
    "RuleOutcomeDao",
    "RulePredicateDao",
    "SeasonDao",
    "StatisticsDao",
    "ThreadDao",
    "ThreadTagDao",
    "VoiceSessionDao",
]
