"""create event lake schema

Revision ID: 7c3e91a4b2d0
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '7c3e91a4b2d0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = 'guildlake'


def _now():
    return sa.text('now()')


def _fk(target: str, ondelete: str = 'CASCADE') -> sa.ForeignKey:
    return sa.ForeignKey(f'{SCHEMA}.{target}', ondelete=ondelete)


def _soft_delete_columns() -> list[sa.Column]:
    return [
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
    ]


def upgrade() -> None:
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        'guild_metadata',
        sa.Column('id', sa.SmallInteger, primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('member_count', sa.Integer),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.CheckConstraint('id = 1', name='guild_metadata_single_row'),
        schema=SCHEMA,
    )
    op.create_table(
        'bot_statistics',
        sa.Column('id', sa.SmallInteger, primary_key=True),
        sa.Column('started_at', sa.DateTime(timezone=True)),
        sa.Column('last_reconciled_at', sa.DateTime(timezone=True)),
        sa.CheckConstraint('id = 1', name='bot_statistics_single_row'),
        schema=SCHEMA,
    )

    op.create_table(
        'members',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('global_name', sa.Text),
        sa.Column('nickname', sa.Text),
        sa.Column('avatar_hash', sa.Text),
        sa.Column('is_bot', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('joined_at', sa.DateTime(timezone=True)),
        sa.Column('premium_since', sa.DateTime(timezone=True)),
        sa.Column('pending', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('p_currency', sa.BigInteger, nullable=False, server_default='0'),
        sa.Column('s_currency', sa.BigInteger, nullable=False, server_default='0'),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'roles',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('position', sa.Integer),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'member_roles',
        sa.Column('member_id', sa.BigInteger, _fk('members.id'), nullable=False),
        sa.Column('role_id', sa.BigInteger, _fk('roles.id'), nullable=False),
        sa.PrimaryKeyConstraint('member_id', 'role_id'),
        schema=SCHEMA,
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('name', sa.Text),
        sa.Column('position', sa.Integer),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'channels',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('name', sa.Text),
        sa.Column('type', sa.Text),
        sa.Column('position', sa.Integer),
        sa.Column('category_id', sa.BigInteger, _fk('categories.id', 'SET NULL')),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'threads',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('channel_id', sa.BigInteger, _fk('channels.id', 'SET NULL')),
        sa.Column('owner_ext_id', sa.BigInteger),
        sa.Column('name', sa.Text),
        sa.Column('type', sa.Text),
        sa.Column('is_archived', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_locked', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_pinned', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('message_count', sa.Integer),
        sa.Column('slowmode', sa.Integer),
        sa.Column('auto_archive_duration', sa.Integer),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'forum_tags',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('channel_id', sa.BigInteger, _fk('channels.id'), nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('emoji_name', sa.Text),
        sa.Column('emoji_ext_id', sa.BigInteger),
        sa.Column('is_moderated', sa.Boolean, nullable=False, server_default=sa.false()),
        *_soft_delete_columns(),
        schema=SCHEMA,
    )
    op.create_table(
        'thread_tags',
        sa.Column('thread_id', sa.BigInteger, _fk('threads.id'), nullable=False),
        sa.Column('tag_id', sa.BigInteger, _fk('forum_tags.id'), nullable=False),
        sa.PrimaryKeyConstraint('thread_id', 'tag_id'),
        schema=SCHEMA,
    )

    op.create_table(
        'events',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('member_id', sa.BigInteger, _fk('members.id'), nullable=False),
        sa.Column('channel_id', sa.BigInteger, _fk('channels.id', 'SET NULL')),
        sa.Column('event_type', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        schema=SCHEMA,
    )
    op.create_index('events_member_type', 'events', ['member_id', 'event_type'], schema=SCHEMA)
    op.create_index('events_channel_ts', 'events', ['channel_id', 'created_at'], schema=SCHEMA)

    op.create_table(
        'messages',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('event_id', sa.BigInteger, _fk('events.id'), nullable=False, unique=True),
        sa.Column('ext_id', sa.BigInteger, nullable=False, unique=True),
        sa.Column('thread_id', sa.BigInteger, _fk('threads.id', 'SET NULL')),
        sa.Column('type', sa.Text, nullable=False),
        sa.Column('author_is_bot', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('flags', sa.Integer, nullable=False, server_default='0'),
        sa.Column('content', sa.Text),
        sa.Column('content_length', sa.Integer, nullable=False, server_default='0'),
        sa.Column('attachment_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reaction_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('mention_user_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('mention_role_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('mention_channel_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('embed_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('referenced_message_ext_id', sa.BigInteger),
        sa.Column('edited_at', sa.DateTime(timezone=True)),
        sa.Column('is_reply', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('spawned_thread', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('has_attachments', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('mention_everyone', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_tts', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_pinned', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('has_stickers', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('has_poll', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_voice_message', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        schema=SCHEMA,
    )
    op.create_table(
        'message_attachments',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('message_id', sa.BigInteger, _fk('messages.id'), nullable=False),
        sa.Column('ext_id', sa.BigInteger, nullable=False),
        sa.Column('filename', sa.Text, nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('content_type', sa.Text),
        sa.Column('size', sa.BigInteger, nullable=False, server_default='0'),
        sa.Column('width', sa.Integer),
        sa.Column('height', sa.Integer),
        sa.Column('duration_secs', sa.Float),
        schema=SCHEMA,
    )
    op.create_index('message_attachments_message', 'message_attachments', ['message_id'], schema=SCHEMA)
    op.create_table(
        'message_reactions',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('message_id', sa.BigInteger, _fk('messages.id'), nullable=False),
        sa.Column('emoji_name', sa.Text, nullable=False),
        sa.Column('emoji_ext_id', sa.BigInteger),
        sa.Column('count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('burst_count', sa.Integer, nullable=False, server_default='0'),
        sa.CheckConstraint('count >= 0', name='message_reactions_count_nonnegative'),
        schema=SCHEMA,
    )
    # unicode emoji have no id; COALESCE keeps them unique per name
    op.execute(
        f"""
        CREATE UNIQUE INDEX uniq_message_reaction_emoji
        ON {SCHEMA}.message_reactions (message_id, emoji_name, (COALESCE(emoji_ext_id, 0)))
        """
    )

    op.create_table(
        'member_role_changes',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('event_id', sa.BigInteger, _fk('events.id'), nullable=False, unique=True),
        sa.Column('roles_added', sa.Text, nullable=False, server_default=''),
        sa.Column('roles_removed', sa.Text, nullable=False, server_default=''),
        schema=SCHEMA,
    )
    op.create_table(
        'voice_sessions',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('event_id', sa.BigInteger, _fk('events.id'), nullable=False),
        sa.Column('member_id', sa.BigInteger, _fk('members.id'), nullable=False),
        sa.Column('channel_id', sa.BigInteger, _fk('channels.id'), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('left_at', sa.DateTime(timezone=True)),
        sa.Column('duration_secs', sa.BigInteger),
        schema=SCHEMA,
    )
    op.create_index(
        'voice_sessions_open',
        'voice_sessions',
        ['member_id', 'channel_id'],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text('left_at IS NULL'),
    )

    op.create_table(
        'rules',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('event_type', sa.Text, nullable=False),
        sa.Column('enabled', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('applies_live', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('applies_historic', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('cooldown_seconds', sa.Integer, nullable=False, server_default='0'),
        schema=SCHEMA,
    )
    op.create_index('rules_enabled_type', 'rules', ['event_type', 'enabled'], schema=SCHEMA)
    op.create_table(
        'rule_predicates',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('rule_id', sa.BigInteger, _fk('rules.id'), nullable=False),
        sa.Column('type', sa.Text, nullable=False),
        sa.Column('parameters', sa.Text),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
        schema=SCHEMA,
    )
    op.create_table(
        'rule_outcomes',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('rule_id', sa.BigInteger, _fk('rules.id'), nullable=False),
        sa.Column('type', sa.Text, nullable=False),
        sa.Column('p_currency', sa.BigInteger),
        sa.Column('s_currency', sa.BigInteger),
        sa.Column('parameters', sa.Text),
        schema=SCHEMA,
    )
    op.create_table(
        'rule_evaluations',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('rule_id', sa.BigInteger, _fk('rules.id'), nullable=False),
        sa.Column('event_id', sa.BigInteger, _fk('events.id'), nullable=False),
        sa.Column('member_id', sa.BigInteger, _fk('members.id'), nullable=False),
        sa.Column('fired_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        sa.UniqueConstraint('rule_id', 'event_id', name='uniq_rule_evaluation_event'),
        schema=SCHEMA,
    )
    op.create_index(
        'rule_evaluations_cooldown',
        'rule_evaluations',
        ['rule_id', 'member_id', 'fired_at'],
        schema=SCHEMA,
    )
    op.create_table(
        'seasons',
        sa.Column('id', sa.BigInteger, sa.Identity(), primary_key=True),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ends_at', sa.DateTime(timezone=True)),
        schema=SCHEMA,
    )

    op.create_table(
        'operational_log',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('logger_name', sa.Text, nullable=False),
        sa.Column('log_level', sa.Text, nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=_now(), nullable=False),
        schema=SCHEMA,
    )


def downgrade() -> None:
    for table in (
        'operational_log',
        'seasons',
        'rule_evaluations',
        'rule_outcomes',
        'rule_predicates',
        'rules',
        'voice_sessions',
        'member_role_changes',
        'message_reactions',
        'message_attachments',
        'messages',
        'events',
        'thread_tags',
        'forum_tags',
        'threads',
        'channels',
        'categories',
        'member_roles',
        'roles',
        'members',
        'bot_statistics',
        'guild_metadata',
    ):
        op.drop_table(table, schema=SCHEMA)
    op.execute(f"DROP SCHEMA IF EXISTS {SCHEMA}")
