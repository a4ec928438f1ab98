from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from guildlake.infra.config import BackfillConfig, IngestConfig, LakeConfig, RuleEngineConfig
from guildlake.store.models import ChannelRow, MemberRow, Rule, RuleOutcome, RulePredicate, VoiceSessionRow

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


class RecordingPool:
    """Stand-in for an asyncpg pool or connection that records every query.

    ``results`` maps a SQL substring to the value returned for matching
    ``fetchval``/``fetchrow``/``fetch`` calls.
    """

    def __init__(self, results=None):
        self.calls = []
        self.results = dict(results or {})
        self.transactions = 0

    def _result(self, query, default):
        for needle, value in self.results.items():
            if needle in query:
                return value(query) if callable(value) else value
        return default

    async def execute(self, query, *args):
        self.calls.append(("execute", query, args))
        return self._result(query, "UPDATE 1")

    async def executemany(self, query, rows):
        self.calls.append(("executemany", query, list(rows)))

    async def fetchval(self, query, *args):
        self.calls.append(("fetchval", query, args))
        return self._result(query, None)

    async def fetchrow(self, query, *args):
        self.calls.append(("fetchrow", query, args))
        return self._result(query, None)

    async def fetch(self, query, *args):
        self.calls.append(("fetch", query, args))
        return self._result(query, [])

    @asynccontextmanager
    async def acquire(self):
        yield self

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield

    def queries(self, method=None):
        return [q for m, q, _ in self.calls if method is None or m == method]


class _Table:
    """Rows keyed by internal id with an ``ext_id`` lookup and soft delete."""

    def __init__(self):
        self.rows: dict[int, dict] = {}
        self._next = 1

    def by_ext(self, ext_id):
        for row in self.rows.values():
            if row["ext_id"] == ext_id:
                return row
        return None

    def _upsert(self, ext_id, **values):
        row = self.by_ext(ext_id)
        if row is None:
            row = {"id": self._next, "ext_id": ext_id, "is_active": True}
            self.rows[self._next] = row
            self._next += 1
        row.update(values)
        return row["id"]

    async def find_id_by_ext_id(self, ext_id):
        row = self.by_ext(ext_id)
        return row["id"] if row else None

    async def find_all_active_ext_ids(self):
        return {r["ext_id"] for r in self.rows.values() if r["is_active"]}

    async def mark_inactive(self, ext_id):
        row = self.by_ext(ext_id)
        if row is None:
            return 0
        row["is_active"] = False
        return 1

    async def deactivate_by_ext_ids(self, ext_ids):
        count = 0
        for ext_id in ext_ids:
            count += await self.mark_inactive(ext_id)
        return count


class FakeMembers(_Table):
    async def upsert(self, ext_id, name, is_bot, *, activate=True):
        row = self.by_ext(ext_id)
        if row is None:
            return self._upsert(
                ext_id, name=name, is_bot=is_bot, is_active=activate, joined_at=None,
                premium_since=None, p_currency=0, s_currency=0,
            )
        row.update(name=name, is_bot=is_bot, is_active=row["is_active"] or activate)
        return row["id"]

    async def upsert_full(self, profile):
        row = self.by_ext(profile.ext_id)
        currency = {} if row else {"p_currency": 0, "s_currency": 0}
        return self._upsert(
            profile.ext_id,
            name=profile.name,
            is_bot=profile.is_bot,
            joined_at=profile.joined_at,
            premium_since=profile.premium_since,
            is_active=True,
            **currency,
        )

    async def activate(self, ext_id):
        row = self.by_ext(ext_id)
        if row:
            row["is_active"] = True
        return int(row is not None)

    async def deactivate(self, ext_id):
        return await self.mark_inactive(ext_id)

    async def deactivate_all(self):
        active = [r for r in self.rows.values() if r["is_active"]]
        for row in active:
            row["is_active"] = False
        return len(active)

    async def find_by_id(self, member_id):
        row = self.rows.get(member_id)
        if row is None:
            return None
        return MemberRow(**{k: row[k] for k in (
            "id", "ext_id", "name", "is_bot", "is_active", "joined_at",
            "premium_since", "p_currency", "s_currency",
        )})

    async def add_currency(self, member_id, p_delta, s_delta):
        row = self.rows[member_id]
        row["p_currency"] += p_delta
        row["s_currency"] += s_delta
        return 1


class FakeRoles(_Table):
    async def upsert(self, ext_id, name, position=None):
        return self._upsert(ext_id, name=name, position=position, is_active=True)


class FakeMemberRoles:
    def __init__(self, roles: FakeRoles):
        self.roles = roles
        self.links: dict[int, set[int]] = {}

    async def replace(self, member_id, role_ids):
        self.links[member_id] = set(role_ids)

    async def find_role_ext_ids(self, member_id):
        return [self.roles.rows[r]["ext_id"] for r in self.links.get(member_id, ())]

    async def has_role(self, member_id, role_ext_id):
        return role_ext_id in await self.find_role_ext_ids(member_id)


class FakeRoleChanges:
    def __init__(self):
        self.rows = []

    async def insert(self, event_id, roles_added, roles_removed):
        self.rows.append((event_id, roles_added, roles_removed))
        return len(self.rows)


class FakeCategories(_Table):
    async def upsert(self, ext_id, name, position=None):
        row = self.by_ext(ext_id) or {}
        return self._upsert(
            ext_id,
            name=name if name is not None else row.get("name"),
            position=position if position is not None else row.get("position"),
            is_active=True,
        )


class FakeChannels(_Table):
    def __init__(self, categories: FakeCategories):
        super().__init__()
        self.categories = categories

    async def upsert(self, ext_id, name, type, position=None, category_id=None):
        return self._upsert(
            ext_id, name=name, type=type, position=position, category_id=category_id, is_active=True
        )

    async def find_by_id(self, channel_id):
        row = self.rows.get(channel_id)
        if row is None:
            return None
        category = self.categories.rows.get(row["category_id"]) if row["category_id"] else None
        return ChannelRow(
            id=row["id"],
            ext_id=row["ext_id"],
            name=row["name"],
            type=row["type"],
            category_ext_id=category["ext_id"] if category else None,
            is_active=row["is_active"],
        )


class FakeThreads(_Table):
    async def upsert(self, thread, channel_id):
        return self._upsert(
            thread.ext_id,
            channel_id=channel_id,
            name=thread.name,
            is_archived=thread.is_archived,
            is_locked=thread.is_locked,
            is_active=True,
        )


class FakeForumTags(_Table):
    async def upsert(self, tag, channel_id):
        return self._upsert(tag.ext_id, channel_id=channel_id, name=tag.name, is_active=True)

    async def find_ids_by_ext_ids(self, ext_ids):
        return [r["id"] for r in self.rows.values() if r["ext_id"] in set(ext_ids)]


class FakeThreadTags:
    def __init__(self):
        self.links: dict[int, list[int]] = {}

    async def replace(self, thread_id, tag_ids):
        self.links[thread_id] = list(tag_ids)


class FakeEvents:
    def __init__(self):
        self.rows: dict[int, dict] = {}
        self._next = 1

    async def insert(self, member_id, channel_id, event_type, created_at=None):
        event_id = self._next
        self._next += 1
        self.rows[event_id] = {
            "id": event_id,
            "member_id": member_id,
            "channel_id": channel_id,
            "event_type": event_type,
            "created_at": created_at or T0,
        }
        return event_id

    async def delete(self, event_id):
        self.rows.pop(event_id, None)

    async def find_created_at(self, event_id):
        row = self.rows.get(event_id)
        return row["created_at"] if row else None

    async def count_by_member_and_type(self, member_id, event_type):
        return sum(
            1 for r in self.rows.values()
            if r["member_id"] == member_id and r["event_type"] == event_type
        )

    def of_type(self, event_type):
        return [r for r in self.rows.values() if r["event_type"] == event_type]


class FakeMessages:
    def __init__(self, events: FakeEvents):
        self.events = events
        self.rows: dict[int, dict] = {}
        self._next = 1

    def by_ext(self, ext_id):
        for row in self.rows.values():
            if row["ext_id"] == ext_id:
                return row
        return None

    async def upsert(self, event_id, thread_id, msg):
        row = self.by_ext(msg.ext_id)
        if row is None:
            row = {"id": self._next, "event_id": event_id, "ext_id": msg.ext_id, "type": msg.type}
            self.rows[self._next] = row
            self._next += 1
        row.update(
            thread_id=thread_id if thread_id is not None else row.get("thread_id"),
            content=msg.content,
            content_length=msg.content_length,
            reaction_count=msg.reaction_count,
            edited_at=msg.edited_at,
        )
        return row["id"], row["event_id"]

    async def find_id_by_ext_id(self, ext_id):
        row = self.by_ext(ext_id)
        return row["id"] if row else None

    async def latest_ext_id_for_channel(self, channel_id):
        ids = [
            r["ext_id"]
            for r in self.rows.values()
            if r.get("thread_id") is None
            and self.events.rows.get(r["event_id"], {}).get("channel_id") == channel_id
        ]
        return max(ids) if ids else None

    async def adjust_reaction_count(self, message_id, delta):
        row = self.rows[message_id]
        row["reaction_count"] = max(row["reaction_count"] + delta, 0)


class FakeAttachments:
    def __init__(self):
        self.by_message: dict[int, list] = {}

    async def replace(self, message_id, attachments):
        self.by_message[message_id] = list(attachments)


class FakeReactions:
    def __init__(self):
        self.counts: dict[tuple, int] = {}

    async def replace(self, message_id, reactions):
        for key in [k for k in self.counts if k[0] == message_id]:
            del self.counts[key]
        for r in reactions:
            self.counts[(message_id, r.emoji_name, r.emoji_ext_id or 0)] = r.count

    async def increment(self, message_id, emoji_name, emoji_ext_id):
        key = (message_id, emoji_name, emoji_ext_id or 0)
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def decrement(self, message_id, emoji_name, emoji_ext_id):
        key = (message_id, emoji_name, emoji_ext_id or 0)
        if not self.counts.get(key):
            return None
        self.counts[key] -= 1
        return self.counts[key]

    async def find_count(self, message_id, emoji_name, emoji_ext_id):
        return self.counts.get((message_id, emoji_name, emoji_ext_id or 0))


class FakeVoice:
    def __init__(self):
        self.sessions: dict[int, dict] = {}
        self._next = 1

    async def open(self, event_id, member_id, channel_id, joined_at):
        session_id = self._next
        self._next += 1
        self.sessions[session_id] = {
            "id": session_id,
            "event_id": event_id,
            "member_id": member_id,
            "channel_id": channel_id,
            "joined_at": joined_at,
            "left_at": None,
            "duration_secs": None,
        }
        return session_id

    def _close(self, session, left_at):
        session["left_at"] = left_at
        session["duration_secs"] = max(int((left_at - session["joined_at"]).total_seconds()), 0)
        return session["duration_secs"]

    def open_sessions(self, member_id=None):
        return [
            s for s in self.sessions.values()
            if s["left_at"] is None and (member_id is None or s["member_id"] == member_id)
        ]

    async def close(self, member_id, channel_id, left_at):
        duration = None
        for s in self.open_sessions(member_id):
            if s["channel_id"] == channel_id:
                duration = self._close(s, left_at)
        return duration

    async def close_all_for_member(self, member_id, left_at):
        sessions = self.open_sessions(member_id)
        for s in sessions:
            self._close(s, left_at)
        return len(sessions)

    async def close_all_orphaned(self, left_at):
        sessions = self.open_sessions()
        for s in sessions:
            self._close(s, left_at)
        return len(sessions)

    async def find_open(self, member_id):
        return [VoiceSessionRow(**s) for s in self.open_sessions(member_id)]


class FakeRules:
    def __init__(self):
        self.rules: list[Rule] = []

    async def find_enabled_by_event_type(self, event_type):
        matches = [r for r in self.rules if r.enabled and r.event_type == event_type]
        return sorted(matches, key=lambda r: (r.name, r.id))

    async def insert(self, name, event_type, **kwargs):
        rule = Rule(id=len(self.rules) + 1, name=name, event_type=event_type, **kwargs)
        self.rules.append(rule)
        return rule.id


class FakePredicates:
    def __init__(self):
        self.rows: list[RulePredicate] = []

    async def find_by_rule_id(self, rule_id):
        return sorted(
            (p for p in self.rows if p.rule_id == rule_id), key=lambda p: (p.sort_order, p.id)
        )

    async def insert(self, rule_id, type, parameters, sort_order):
        row = RulePredicate(len(self.rows) + 1, rule_id, type, parameters, sort_order)
        self.rows.append(row)
        return row.id


class FakeOutcomes:
    def __init__(self):
        self.rows: list[RuleOutcome] = []

    async def find_by_rule_id(self, rule_id):
        return [o for o in self.rows if o.rule_id == rule_id]

    async def insert(self, rule_id, type, p_currency=None, s_currency=None, parameters=None):
        row = RuleOutcome(len(self.rows) + 1, rule_id, type, p_currency, s_currency, parameters)
        self.rows.append(row)
        return row.id


class FakeEvaluations:
    def __init__(self, events: FakeEvents, clock):
        self.events = events
        self.clock = clock
        self.rows: list[dict] = []

    async def insert(self, rule_id, event_id, member_id):
        if any(r["rule_id"] == rule_id and r["event_id"] == event_id for r in self.rows):
            return None
        self.rows.append(
            {"rule_id": rule_id, "event_id": event_id, "member_id": member_id, "fired_at": self.clock()}
        )
        return len(self.rows)

    async def count_by_rule_and_event(self, rule_id, event_id):
        return sum(1 for r in self.rows if r["rule_id"] == rule_id and r["event_id"] == event_id)

    async def count_recent_by_rule_and_member(self, rule_id, member_id, since):
        return sum(
            1 for r in self.rows
            if r["rule_id"] == rule_id and r["member_id"] == member_id and r["fired_at"] > since
        )

    async def count_by_rule_and_member_between(self, rule_id, member_id, start, end):
        count = 0
        for r in self.rows:
            created = self.events.rows.get(r["event_id"], {}).get("created_at")
            if r["rule_id"] == rule_id and r["member_id"] == member_id and created and start < created <= end:
                count += 1
        return count


class FakeSeasons:
    def __init__(self):
        self.rows: list[dict] = []

    def _active(self, row, now):
        return row["starts_at"] <= now and (row["ends_at"] is None or row["ends_at"] > now)

    async def count_active_season(self, season_id, now):
        return sum(1 for r in self.rows if r["id"] == season_id and self._active(r, now))

    async def count_active_seasons(self, now):
        return sum(1 for r in self.rows if self._active(r, now))


class FakeGuild:
    def __init__(self):
        self.row = None

    async def upsert(self, ext_id, name, created_at=None, member_count=None):
        self.row = {"ext_id": ext_id, "name": name, "member_count": member_count}


class FakeStatistics:
    def __init__(self):
        self.startups = 0
        self.reconciliations = 0

    async def record_startup(self):
        self.startups += 1

    async def record_reconciliation(self):
        self.reconciliations += 1


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeStore:
    """In-memory stand-in for :class:`guildlake.store.EntityStore`.

    ``transaction()`` yields the same store and counts how often it was used.
    """

    def __init__(self, clock=None):
        self.clock = clock or FakeClock()
        self.transactions = 0
        self.guild = FakeGuild()
        self.statistics = FakeStatistics()
        self.members = FakeMembers()
        self.roles = FakeRoles()
        self.member_roles = FakeMemberRoles(self.roles)
        self.role_changes = FakeRoleChanges()
        self.categories = FakeCategories()
        self.channels = FakeChannels(self.categories)
        self.threads = FakeThreads()
        self.forum_tags = FakeForumTags()
        self.thread_tags = FakeThreadTags()
        self.events = FakeEvents()
        self.messages = FakeMessages(self.events)
        self.attachments = FakeAttachments()
        self.reactions = FakeReactions()
        self.voice = FakeVoice()
        self.rules = FakeRules()
        self.predicates = FakePredicates()
        self.outcomes = FakeOutcomes()
        self.evaluations = FakeEvaluations(self.events, self.clock)
        self.seasons = FakeSeasons()

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store(clock):
    return FakeStore(clock)


@pytest.fixture()
def lake_config():
    return LakeConfig(
        ingest=IngestConfig(enabled=True, ignore_bots=False, reconcile_on_start=True),
        rules=RuleEngineConfig(enabled=True, queue_size=10),
        backfill=BackfillConfig(enabled=False, page_size=2, evaluate_rules=False),
    )
