"""Flat, event-type-tagged field bag that every predicate reads from.

Fields that do not apply to an event type stay ``None`` so a predicate can
tell "does not apply" apart from ``False`` or ``0``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..store.models import ChannelRow, EventType, MemberRow, MessageRow

LIVE = "live"
HISTORIC = "historic"

# accessor name -> attribute
_BOOLEAN_FIELDS = {
    "author_is_bot": "author_is_bot",
    "is_reply": "is_reply",
    "has_poll": "has_poll",
    "has_stickers": "has_stickers",
    "is_tts": "is_tts",
    "is_pinned": "is_pinned",
    "has_attachments": "has_attachments",
    "mention_everyone": "mention_everyone",
    "is_voice_message": "is_voice_message",
    "member_is_boosting": "member_is_boosting",
}

_NUMERIC_FIELDS = {
    "content_length": "content_length",
    "attachment_count": "attachment_count",
    "reaction_count": "reaction_count",
    "mention_user_count": "mention_user_count",
    "embed_count": "embed_count",
    "p_currency": "member_p_currency",
    "s_currency": "member_s_currency",
    "session_duration_minutes": "session_duration_minutes",
}

_STRING_FIELDS = {
    "channel_ext_id": "channel_ext_id",
    "channel_type": "channel_type",
    "category_ext_id": "category_ext_id",
    "message_type": "message_type",
    "attachment_filename": "attachment_filename",
    "attachment_content_type": "attachment_content_type",
    "voice_channel_ext_id": "voice_channel_ext_id",
}


@dataclass(frozen=True)
class RuleContext:
    event_type: str
    event_id: int
    member_id: int
    channel_id: int | None = None
    created_at: datetime | None = None
    source: str = LIVE

    # message
    content_length: int | None = None
    author_is_bot: bool | None = None
    is_reply: bool | None = None
    has_poll: bool | None = None
    has_stickers: bool | None = None
    is_tts: bool | None = None
    is_pinned: bool | None = None
    has_attachments: bool | None = None
    attachment_count: int | None = None
    reaction_count: int | None = None
    mention_user_count: int | None = None
    mention_everyone: bool | None = None
    embed_count: int | None = None
    is_voice_message: bool | None = None
    message_type: str | None = None
    attachment_filename: str | None = None
    attachment_content_type: str | None = None

    # member
    member_ext_id: int | None = None
    member_is_boosting: bool | None = None
    member_joined_at: datetime | None = None
    member_p_currency: int | None = None
    member_s_currency: int | None = None

    # channel
    channel_ext_id: int | None = None
    channel_type: str | None = None
    category_ext_id: int | None = None

    # role change, comma-joined role ext ids
    roles_added: str | None = None
    roles_removed: str | None = None

    # voice
    voice_channel_ext_id: int | None = None
    session_duration_minutes: float | None = None

    @property
    def is_historic(self) -> bool:
        return self.source == HISTORIC

    def boolean_field(self, name: str) -> bool | None:
        if name == "has_embed":
            return None if self.embed_count is None else self.embed_count > 0
        attr = _BOOLEAN_FIELDS.get(name)
        return getattr(self, attr) if attr else None

    def numeric_field(self, name: str) -> float | None:
        attr = _NUMERIC_FIELDS.get(name)
        return getattr(self, attr) if attr else None

    def string_field(self, name: str) -> str | None:
        attr = _STRING_FIELDS.get(name)
        value = getattr(self, attr) if attr else None
        return None if value is None else str(value)


def _member_slots(member: MemberRow) -> dict:
    return {
        "member_ext_id": member.ext_id,
        "member_is_boosting": member.is_boosting,
        "member_joined_at": member.joined_at,
        "member_p_currency": member.p_currency,
        "member_s_currency": member.s_currency,
    }


def _channel_slots(channel: ChannelRow | None) -> dict:
    if channel is None:
        return {}
    return {
        "channel_ext_id": channel.ext_id,
        "channel_type": channel.type,
        "category_ext_id": channel.category_ext_id,
    }


def for_message(
    event_id: int,
    member: MemberRow,
    channel: ChannelRow | None,
    message: MessageRow,
    *,
    source: str = LIVE,
) -> RuleContext:
    """Context for MESSAGE_CREATE. ``channel`` is the parent channel for thread posts."""
    first = message.attachments[0] if message.attachments else None
    return RuleContext(
        event_type=EventType.MESSAGE_CREATE,
        event_id=event_id,
        member_id=member.id,
        channel_id=channel.id if channel else None,
        created_at=message.created_at,
        source=source,
        content_length=message.content_length,
        author_is_bot=message.author_is_bot,
        is_reply=message.is_reply,
        has_poll=message.has_poll,
        has_stickers=message.has_stickers,
        is_tts=message.is_tts,
        is_pinned=message.is_pinned,
        has_attachments=message.has_attachments,
        attachment_count=message.attachment_count,
        reaction_count=message.reaction_count,
        mention_user_count=message.mention_user_count,
        mention_everyone=message.mention_everyone,
        embed_count=message.embed_count,
        is_voice_message=message.is_voice_message,
        message_type=message.type,
        attachment_filename=first.filename if first else None,
        attachment_content_type=first.content_type if first else None,
        **_member_slots(member),
        **_channel_slots(channel),
    )


def for_member_event(
    event_type: str,
    event_id: int,
    member: MemberRow,
    *,
    created_at: datetime | None = None,
    source: str = LIVE,
) -> RuleContext:
    """Context for MEMBER_JOIN and MEMBER_LEAVE."""
    return RuleContext(
        event_type=event_type,
        event_id=event_id,
        member_id=member.id,
        created_at=created_at,
        source=source,
        **_member_slots(member),
    )


def for_role_change(
    event_id: int,
    member: MemberRow,
    roles_added: str,
    roles_removed: str,
    *,
    created_at: datetime | None = None,
) -> RuleContext:
    return RuleContext(
        event_type=EventType.MEMBER_ROLE_CHANGE,
        event_id=event_id,
        member_id=member.id,
        created_at=created_at,
        roles_added=roles_added,
        roles_removed=roles_removed,
        **_member_slots(member),
    )


def for_voice_event(
    event_type: str,
    event_id: int,
    member: MemberRow,
    channel: ChannelRow,
    *,
    session_duration_secs: int | None = None,
    created_at: datetime | None = None,
    source: str = LIVE,
) -> RuleContext:
    """Context for VOICE_JOIN, VOICE_LEAVE and VOICE_MOVE.

    ``session_duration_secs`` is only known on leave, when a session closes.
    """
    minutes = None if session_duration_secs is None else session_duration_secs / 60.0
    return RuleContext(
        event_type=event_type,
        event_id=event_id,
        member_id=member.id,
        channel_id=channel.id,
        created_at=created_at,
        source=source,
        voice_channel_ext_id=channel.ext_id,
        session_duration_minutes=minutes,
        **_member_slots(member),
        **_channel_slots(channel),
    )
