"""Convert discord.py objects into store row types.

Everything is read through ``getattr`` with defaults so partial objects
(raw gateway payloads, test doubles, uncached parents) normalize cleanly.
"""
from __future__ import annotations

from typing import Any

import discord

from ..store.models import (
    AttachmentRow,
    ChannelInfo,
    ForumTagInfo,
    MemberProfile,
    MessageRow,
    ReactionRow,
    RoleInfo,
    ThreadInfo,
)
from ..util import enum_name

THREAD_TYPES = frozenset({"public_thread", "private_thread", "news_thread"})
VOICE_TYPES = frozenset({"voice", "stage_voice"})
CATEGORY_TYPE = "category"


def channel_type(channel: Any) -> str | None:
    return enum_name(getattr(channel, "type", None))


def is_thread(channel: Any) -> bool:
    return isinstance(channel, discord.Thread) or channel_type(channel) in THREAD_TYPES


def is_category(channel: Any) -> bool:
    return isinstance(channel, discord.CategoryChannel) or channel_type(channel) == CATEGORY_TYPE


def is_voice(channel: Any) -> bool:
    return channel_type(channel) in VOICE_TYPES


def _asset_key(asset: Any) -> str | None:
    if asset is None:
        return None
    return getattr(asset, "key", None)


def is_default_role(role: Any) -> bool:
    is_default = getattr(role, "is_default", None)
    return bool(is_default()) if callable(is_default) else False


def role_info(role: Any) -> RoleInfo:
    return RoleInfo(
        ext_id=role.id,
        name=getattr(role, "name", None) or str(role.id),
        position=getattr(role, "position", None),
    )


def member_profile(member: Any) -> MemberProfile:
    """Full profile of a guild member; ``@everyone`` is not a real role assignment."""
    roles = tuple(
        role_info(r) for r in getattr(member, "roles", None) or [] if not is_default_role(r)
    )
    return MemberProfile(
        ext_id=member.id,
        name=getattr(member, "name", None) or str(member.id),
        global_name=getattr(member, "global_name", None),
        nickname=getattr(member, "nick", None),
        avatar_hash=_asset_key(getattr(member, "avatar", None)),
        is_bot=bool(getattr(member, "bot", False)),
        joined_at=getattr(member, "joined_at", None),
        premium_since=getattr(member, "premium_since", None),
        pending=bool(getattr(member, "pending", False)),
        roles=roles,
    )


def channel_info(channel: Any) -> ChannelInfo:
    category = getattr(channel, "category", None)
    category_ext_id = getattr(category, "id", None) or getattr(channel, "category_id", None)
    return ChannelInfo(
        ext_id=channel.id,
        name=getattr(channel, "name", None),
        type=channel_type(channel),
        position=getattr(channel, "position", None),
        category_ext_id=category_ext_id,
        category_name=getattr(category, "name", None),
    )


def thread_info(thread: Any) -> ThreadInfo:
    flags = getattr(thread, "flags", None)
    tags = getattr(thread, "applied_tags", None) or []
    return ThreadInfo(
        ext_id=thread.id,
        parent_ext_id=getattr(thread, "parent_id", None),
        name=getattr(thread, "name", None),
        type=channel_type(thread),
        owner_ext_id=getattr(thread, "owner_id", None),
        is_archived=bool(getattr(thread, "archived", False)),
        is_locked=bool(getattr(thread, "locked", False)),
        is_pinned=bool(getattr(flags, "pinned", False)),
        message_count=getattr(thread, "message_count", None),
        slowmode=getattr(thread, "slowmode_delay", None),
        auto_archive_duration=getattr(thread, "auto_archive_duration", None),
        tag_ext_ids=tuple(t.id for t in tags),
    )


def forum_tag_info(tag: Any) -> ForumTagInfo:
    emoji = getattr(tag, "emoji", None)
    return ForumTagInfo(
        ext_id=tag.id,
        name=tag.name,
        emoji_name=getattr(emoji, "name", None) if emoji is not None else None,
        emoji_ext_id=getattr(emoji, "id", None) if emoji is not None else None,
        is_moderated=bool(getattr(tag, "moderated", False)),
    )


def emoji_key(emoji: Any) -> tuple[str, int | None]:
    """``(name, custom emoji id)``; unicode emoji have no id."""
    if isinstance(emoji, str):
        return emoji, None
    name = getattr(emoji, "name", None) or str(emoji)
    return name, getattr(emoji, "id", None)


def attachment_row(attachment: Any) -> AttachmentRow:
    duration = getattr(attachment, "duration", None)
    return AttachmentRow(
        ext_id=attachment.id,
        filename=attachment.filename,
        description=getattr(attachment, "description", None),
        content_type=getattr(attachment, "content_type", None),
        size=getattr(attachment, "size", 0) or 0,
        width=getattr(attachment, "width", None),
        height=getattr(attachment, "height", None),
        duration_secs=float(duration) if duration else None,
    )


def reaction_row(reaction: Any) -> ReactionRow:
    name, ext_id = emoji_key(reaction.emoji)
    return ReactionRow(
        emoji_name=name,
        emoji_ext_id=ext_id,
        count=getattr(reaction, "count", 0) or 0,
        burst_count=getattr(reaction, "burst_count", 0) or 0,
    )


def message_row(message: Any) -> MessageRow:
    content = getattr(message, "content", None) or ""
    attachments = tuple(attachment_row(a) for a in getattr(message, "attachments", None) or [])
    reactions = tuple(reaction_row(r) for r in getattr(message, "reactions", None) or [])
    reference = getattr(message, "reference", None)
    referenced_id = getattr(reference, "message_id", None) if reference else None
    flags = getattr(message, "flags", None)
    author = getattr(message, "author", None)
    msg_type = enum_name(getattr(message, "type", None)) or "default"
    return MessageRow(
        ext_id=message.id,
        type=msg_type,
        author_is_bot=bool(getattr(author, "bot", False)),
        created_at=getattr(message, "created_at", None),
        content=content,
        content_length=len(content),
        flags=getattr(flags, "value", 0) or 0,
        attachment_count=len(attachments),
        reaction_count=sum(r.count for r in reactions),
        mention_user_count=len(getattr(message, "raw_mentions", None) or []),
        mention_role_count=len(getattr(message, "raw_role_mentions", None) or []),
        mention_channel_count=len(getattr(message, "raw_channel_mentions", None) or []),
        embed_count=len(getattr(message, "embeds", None) or []),
        referenced_message_ext_id=referenced_id,
        edited_at=getattr(message, "edited_at", None),
        is_reply=msg_type == "reply" and referenced_id is not None,
        spawned_thread=getattr(message, "thread", None) is not None,
        has_attachments=bool(attachments),
        mention_everyone=bool(getattr(message, "mention_everyone", False)),
        is_tts=bool(getattr(message, "tts", False)),
        is_pinned=bool(getattr(message, "pinned", False)),
        has_stickers=bool(getattr(message, "stickers", None)),
        has_poll=getattr(message, "poll", None) is not None,
        is_voice_message=bool(getattr(flags, "voice", False)),
        attachments=attachments,
        reactions=reactions,
    )
