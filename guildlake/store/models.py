"""Row types passed between the normalizer, the store and the rule engine."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping, TypeVar

T = TypeVar("T")


class EventType:
    MESSAGE_CREATE = "MESSAGE_CREATE"
    MEMBER_JOIN = "MEMBER_JOIN"
    MEMBER_LEAVE = "MEMBER_LEAVE"
    MEMBER_ROLE_CHANGE = "MEMBER_ROLE_CHANGE"
    VOICE_JOIN = "VOICE_JOIN"
    VOICE_LEAVE = "VOICE_LEAVE"
    VOICE_MOVE = "VOICE_MOVE"

    ALL = frozenset(
        {
            MESSAGE_CREATE,
            MEMBER_JOIN,
            MEMBER_LEAVE,
            MEMBER_ROLE_CHANGE,
            VOICE_JOIN,
            VOICE_LEAVE,
            VOICE_MOVE,
        }
    )


def from_record(cls: type[T], record: Mapping[str, Any] | None) -> T | None:
    """Build a dataclass from an asyncpg record, ignoring unknown columns."""
    if record is None:
        return None
    data = dict(record)
    return cls(**{f.name: data[f.name] for f in fields(cls) if f.name in data})


@dataclass(frozen=True)
class RoleInfo:
    ext_id: int
    name: str
    position: int | None = None


@dataclass(frozen=True)
class MemberProfile:
    """Everything a full member upsert writes, plus the observed role list."""

    ext_id: int
    name: str
    global_name: str | None = None
    nickname: str | None = None
    avatar_hash: str | None = None
    is_bot: bool = False
    joined_at: datetime | None = None
    premium_since: datetime | None = None
    pending: bool = False
    roles: tuple[RoleInfo, ...] = ()

    @property
    def role_ext_ids(self) -> set[int]:
        return {r.ext_id for r in self.roles}


@dataclass(frozen=True)
class MemberRow:
    id: int
    ext_id: int
    name: str | None = None
    is_bot: bool = False
    is_active: bool = True
    joined_at: datetime | None = None
    premium_since: datetime | None = None
    p_currency: int = 0
    s_currency: int = 0

    @property
    def is_boosting(self) -> bool:
        return self.premium_since is not None


@dataclass(frozen=True)
class ChannelRow:
    id: int
    ext_id: int
    name: str | None = None
    type: str | None = None
    category_ext_id: int | None = None
    is_active: bool = True


@dataclass(frozen=True)
class ChannelInfo:
    ext_id: int
    name: str | None
    type: str | None
    position: int | None = None
    category_ext_id: int | None = None
    category_name: str | None = None


@dataclass(frozen=True)
class ThreadInfo:
    ext_id: int
    parent_ext_id: int | None
    name: str | None
    type: str | None
    owner_ext_id: int | None = None
    is_archived: bool = False
    is_locked: bool = False
    is_pinned: bool = False
    message_count: int | None = None
    slowmode: int | None = None
    auto_archive_duration: int | None = None
    tag_ext_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ForumTagInfo:
    ext_id: int
    name: str
    emoji_name: str | None = None
    emoji_ext_id: int | None = None
    is_moderated: bool = False


@dataclass(frozen=True)
class AttachmentRow:
    ext_id: int
    filename: str
    description: str | None = None
    content_type: str | None = None
    size: int = 0
    width: int | None = None
    height: int | None = None
    duration_secs: float | None = None


@dataclass(frozen=True)
class ReactionRow:
    emoji_name: str
    emoji_ext_id: int | None = None
    count: int = 0
    burst_count: int = 0


@dataclass(frozen=True)
class MessageRow:
    """Normalized message detail; ``attachments``/``reactions`` are child sets."""

    ext_id: int
    type: str
    author_is_bot: bool
    created_at: datetime | None = None
    content: str | None = None
    content_length: int = 0
    flags: int = 0
    attachment_count: int = 0
    reaction_count: int = 0
    mention_user_count: int = 0
    mention_role_count: int = 0
    mention_channel_count: int = 0
    embed_count: int = 0
    referenced_message_ext_id: int | None = None
    edited_at: datetime | None = None
    is_reply: bool = False
    spawned_thread: bool = False
    has_attachments: bool = False
    mention_everyone: bool = False
    is_tts: bool = False
    is_pinned: bool = False
    has_stickers: bool = False
    has_poll: bool = False
    is_voice_message: bool = False
    attachments: tuple[AttachmentRow, ...] = field(default=(), compare=False)
    reactions: tuple[ReactionRow, ...] = field(default=(), compare=False)


@dataclass(frozen=True)
class VoiceSessionRow:
    id: int
    event_id: int
    member_id: int
    channel_id: int
    joined_at: datetime
    left_at: datetime | None = None
    duration_secs: int | None = None


@dataclass(frozen=True)
class Rule:
    id: int
    name: str
    event_type: str
    enabled: bool = True
    applies_live: bool = True
    applies_historic: bool = False
    cooldown_seconds: int = 0
    description: str | None = None


@dataclass(frozen=True)
class RulePredicate:
    id: int
    rule_id: int
    type: str
    parameters: str | None = None
    sort_order: int = 0


@dataclass(frozen=True)
class RuleOutcome:
    id: int
    rule_id: int
    type: str
    p_currency: int | None = None
    s_currency: int | None = None
    parameters: str | None = None
