from types import SimpleNamespace

import discord

from conftest import T0

from guildlake.ingest import normalize


def _role(id, name, default=False, position=1):
    return SimpleNamespace(id=id, name=name, position=position, is_default=lambda: default)


def test_member_profile_drops_everyone_role():
    member = SimpleNamespace(
        id=10,
        name="alice",
        global_name="Alice",
        nick=None,
        avatar=SimpleNamespace(key="abc"),
        bot=False,
        joined_at=T0,
        premium_since=None,
        pending=False,
        roles=[_role(1, "@everyone", default=True), _role(2, "mods")],
    )
    profile = normalize.member_profile(member)
    assert profile.ext_id == 10
    assert profile.avatar_hash == "abc"
    assert profile.role_ext_ids == {2}
    assert profile.joined_at == T0


def test_member_profile_tolerates_partial_user():
    profile = normalize.member_profile(SimpleNamespace(id=5))
    assert profile.name == "5"
    assert profile.roles == ()
    assert profile.is_bot is False


def test_channel_kinds():
    text = SimpleNamespace(id=1, type=discord.ChannelType.text)
    category = SimpleNamespace(id=2, type=discord.ChannelType.category)
    thread = SimpleNamespace(id=3, type=discord.ChannelType.public_thread)
    voice = SimpleNamespace(id=4, type=discord.ChannelType.stage_voice)
    assert not normalize.is_thread(text) and not normalize.is_category(text)
    assert normalize.is_category(category)
    assert normalize.is_thread(thread)
    assert normalize.is_voice(voice)


def test_channel_info_reads_category():
    channel = SimpleNamespace(
        id=20,
        name="general",
        type=discord.ChannelType.text,
        position=3,
        category=SimpleNamespace(id=7, name="Main"),
    )
    info = normalize.channel_info(channel)
    assert info.type == "text"
    assert info.category_ext_id == 7
    assert info.category_name == "Main"


def test_thread_info_tags_and_flags():
    thread = SimpleNamespace(
        id=30,
        parent_id=20,
        name="help",
        type=discord.ChannelType.public_thread,
        owner_id=10,
        archived=True,
        locked=False,
        flags=SimpleNamespace(pinned=True),
        message_count=4,
        slowmode_delay=0,
        auto_archive_duration=1440,
        applied_tags=[SimpleNamespace(id=501), SimpleNamespace(id=502)],
    )
    info = normalize.thread_info(thread)
    assert info.parent_ext_id == 20
    assert info.is_archived and info.is_pinned and not info.is_locked
    assert info.tag_ext_ids == (501, 502)


def test_emoji_key():
    assert normalize.emoji_key("🔥") == ("🔥", None)
    assert normalize.emoji_key(SimpleNamespace(name="blob", id=88)) == ("blob", 88)
    assert normalize.emoji_key(SimpleNamespace(name="🔥", id=None)) == ("🔥", None)


def _message(**overrides):
    data = dict(
        id=100,
        content="hello there",
        type=discord.MessageType.reply,
        author=SimpleNamespace(id=10, bot=False),
        created_at=T0,
        attachments=[
            SimpleNamespace(
                id=9, filename="cat.PNG", description=None, content_type="image/png",
                size=1200, width=10, height=10, duration=None,
            )
        ],
        reactions=[
            SimpleNamespace(emoji="🔥", count=2, burst_count=0),
            SimpleNamespace(emoji=SimpleNamespace(name="blob", id=88), count=1, burst_count=1),
        ],
        reference=SimpleNamespace(message_id=99),
        flags=SimpleNamespace(value=8192, voice=True),
        raw_mentions=[1, 2],
        raw_role_mentions=[],
        raw_channel_mentions=[3],
        embeds=[object()],
        edited_at=None,
        thread=None,
        mention_everyone=False,
        tts=False,
        pinned=True,
        stickers=[],
        poll=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def test_message_row_counts_and_flags():
    row = normalize.message_row(_message())
    assert row.type == "reply"
    assert row.is_reply is True
    assert row.referenced_message_ext_id == 99
    assert row.content_length == len("hello there")
    assert row.attachment_count == 1 and row.has_attachments
    assert row.reaction_count == 3
    assert row.mention_user_count == 2
    assert row.mention_channel_count == 1
    assert row.embed_count == 1
    assert row.is_voice_message is True
    assert row.is_pinned is True
    assert row.has_stickers is False
    assert row.has_poll is False
    assert row.reactions[1].emoji_ext_id == 88
    assert row.attachments[0].filename == "cat.PNG"


def test_reply_type_without_reference_is_not_reply():
    row = normalize.message_row(_message(reference=None))
    assert row.is_reply is False


def test_message_row_empty_content():
    row = normalize.message_row(
        _message(content=None, attachments=[], reactions=[], type=discord.MessageType.default)
    )
    assert row.content == ""
    assert row.content_length == 0
    assert row.has_attachments is False
    assert row.type == "default"
