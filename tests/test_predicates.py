import asyncio
from datetime import timedelta

import pytest

from conftest import T0, FakeClock, FakeStore

from guildlake.errors import PredicateParameterError
from guildlake.rules.context import HISTORIC, RuleContext
from guildlake.rules.predicates import (
    BooleanFieldEvaluator,
    MemberLookupEvaluator,
    NumericThresholdEvaluator,
    StringMatchEvaluator,
    TemporalEvaluator,
    default_evaluators,
    parse_params,
)
from guildlake.rules.predicates.temporal import hour_in_range
from guildlake.store.models import EventType, MemberProfile, RoleInfo


def _msg(**kw):
    return RuleContext(EventType.MESSAGE_CREATE, 1, 1, **kw)


def _run(evaluator, predicate_type, ctx, params=None):
    return asyncio.run(evaluator.evaluate(predicate_type, ctx, params or {}))


# ── parameters ───────────────────────────────────────────────────────────


def test_parse_params():
    assert parse_params("X", None) == {}
    assert parse_params("X", "  ") == {}
    assert parse_params("X", '{"threshold": 3}') == {"threshold": 3}
    with pytest.raises(PredicateParameterError):
        parse_params("X", "{nope")
    with pytest.raises(PredicateParameterError):
        parse_params("X", "[1, 2]")


def test_each_type_has_one_evaluator():
    evaluators = default_evaluators(FakeStore())
    for predicate_type in ("IS_REPLY", "MIN_CONTENT_LENGTH", "IN_CHANNEL", "MEMBER_HAS_ROLE", "DAY_OF_WEEK_IS"):
        assert sum(e.handles(predicate_type) for e in evaluators) == 1
    assert not any(e.handles("DOES_NOT_EXIST") for e in evaluators)


# ── boolean ──────────────────────────────────────────────────────────────


def test_boolean_predicates():
    ev = BooleanFieldEvaluator()
    assert _run(ev, "AUTHOR_NOT_BOT", _msg(author_is_bot=False))
    assert not _run(ev, "AUTHOR_NOT_BOT", _msg(author_is_bot=True))
    assert _run(ev, "HAS_EMBED", _msg(embed_count=2))
    assert not _run(ev, "HAS_EMBED", _msg(embed_count=0))
    assert _run(ev, "IS_NOT_REPLY", _msg(is_reply=False))


def test_boolean_expected_override():
    ev = BooleanFieldEvaluator()
    assert _run(ev, "IS_REPLY", _msg(is_reply=False), {"expected": False})
    assert _run(ev, "IS_REPLY", _msg(is_reply=False), {"expected": "false"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "IS_REPLY", _msg(is_reply=False), {"expected": "nah"})


def test_boolean_absent_field_never_matches():
    ev = BooleanFieldEvaluator()
    join = RuleContext(EventType.MEMBER_JOIN, 1, 1)
    assert not _run(ev, "AUTHOR_NOT_BOT", join)
    assert not _run(ev, "IS_NOT_TTS", join)


# ── numeric ──────────────────────────────────────────────────────────────


def test_content_length_window():
    ev = NumericThresholdEvaluator()
    ctx = _msg(content_length=150)
    assert _run(ev, "MIN_CONTENT_LENGTH", ctx, {"threshold": 100})
    assert not _run(ev, "MAX_CONTENT_LENGTH", ctx, {"threshold": 100})
    assert _run(ev, "MIN_CONTENT_LENGTH", _msg(content_length=100), {"threshold": 100})


def test_numeric_overrides_and_errors():
    ev = NumericThresholdEvaluator()
    ctx = _msg(content_length=5, member_p_currency=50)
    assert _run(ev, "MIN_CONTENT_LENGTH", ctx, {"threshold": 10, "operator": "<"})
    assert _run(ev, "MIN_CONTENT_LENGTH", ctx, {"threshold": 40, "field": "p_currency"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "MIN_CONTENT_LENGTH", ctx, {})
    with pytest.raises(PredicateParameterError):
        _run(ev, "MIN_CONTENT_LENGTH", ctx, {"threshold": "lots"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "MIN_CONTENT_LENGTH", ctx, {"threshold": 1, "operator": "~="})


def test_numeric_absent_field_fails():
    ev = NumericThresholdEvaluator()
    assert not _run(ev, "MIN_SESSION_DURATION_MINUTES", _msg(), {"threshold": 0})


# ── string ───────────────────────────────────────────────────────────────


def test_channel_matching_accepts_numeric_ids():
    ev = StringMatchEvaluator()
    ctx = _msg(channel_ext_id=20, channel_type="text", category_ext_id=7)
    assert _run(ev, "IN_CHANNEL", ctx, {"channel_ext_id": 20})
    assert _run(ev, "IN_CHANNEL", ctx, {"channel_ext_id": "20"})
    assert _run(ev, "NOT_IN_CHANNEL", ctx, {"channel_ext_id": "21"})
    assert _run(ev, "IN_CATEGORY", ctx, {"category_ext_id": 7})
    assert _run(ev, "CHANNEL_TYPE_IS", ctx, {"type": "TEXT"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "IN_CHANNEL", ctx, {"channel_ext_id": "general"})


def test_negated_string_predicate_fails_without_field():
    ev = StringMatchEvaluator()
    join = RuleContext(EventType.MEMBER_JOIN, 1, 1)
    assert not _run(ev, "NOT_IN_CHANNEL", join, {"channel_ext_id": 20})
    assert not _run(ev, "IN_CHANNEL", join, {"channel_ext_id": 20})


def test_attachment_predicates():
    ev = StringMatchEvaluator()
    ctx = _msg(attachment_filename="Cat.PNG", attachment_content_type="image/png")
    assert _run(ev, "ATTACHMENT_EXTENSION_IS", ctx, {"extension": ".png"})
    assert _run(ev, "ATTACHMENT_CONTENT_TYPE_IS", ctx, {"content_type": "IMAGE/PNG"})
    assert _run(ev, "ATTACHMENT_IS_IMAGE", ctx)
    assert not _run(ev, "ATTACHMENT_IS_VIDEO", ctx)
    assert not _run(ev, "ATTACHMENT_IS_IMAGE", _msg())
    assert not _run(ev, "ATTACHMENT_EXTENSION_IS", _msg(attachment_filename="README"), {"extension": "md"})


# ── member lookup ────────────────────────────────────────────────────────


def _member(store, ext_id=10, joined_at=T0, roles=()):
    async def setup():
        member_id = await store.members.upsert_full(
            MemberProfile(ext_id=ext_id, name="m", joined_at=joined_at, roles=roles)
        )
        role_ids = [await store.roles.upsert(r.ext_id, r.name) for r in roles]
        await store.member_roles.replace(member_id, role_ids)
        return member_id

    return asyncio.run(setup())


def test_member_roles(store, clock):
    member_id = _member(store, roles=(RoleInfo(2, "mods"),))
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(EventType.MESSAGE_CREATE, 1, member_id)
    assert _run(ev, "MEMBER_HAS_ROLE", ctx, {"role_ext_id": "2"})
    assert not _run(ev, "MEMBER_NOT_HAS_ROLE", ctx, {"role_ext_id": 2})
    assert _run(ev, "MEMBER_NOT_HAS_ROLE", ctx, {"role_ext_id": 3})


def test_server_age_uses_stored_join_date(store, clock):
    member_id = _member(store, joined_at=T0 - timedelta(days=10))
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(EventType.MESSAGE_CREATE, 1, member_id)
    assert _run(ev, "MIN_SERVER_AGE_DAYS", ctx, {"threshold": 10})
    assert not _run(ev, "MIN_SERVER_AGE_DAYS", ctx, {"threshold": 11})


def test_server_age_historic_uses_event_time(store, clock):
    member_id = _member(store, joined_at=T0 - timedelta(days=10))
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(
        EventType.MESSAGE_CREATE, 1, member_id, created_at=T0 - timedelta(days=5), source=HISTORIC
    )
    assert not _run(ev, "MIN_SERVER_AGE_DAYS", ctx, {"threshold": 10})


def test_account_age_from_snowflake(store):
    # 175928847299117063 was created 2016-04-30
    ev = MemberLookupEvaluator(store, FakeClock())
    ctx = RuleContext(EventType.MEMBER_JOIN, 1, 1, member_ext_id=175928847299117063)
    assert _run(ev, "MIN_ACCOUNT_AGE_DAYS", ctx, {"threshold": 365})
    assert not _run(ev, "MIN_ACCOUNT_AGE_DAYS", RuleContext(EventType.MEMBER_JOIN, 1, 1), {"threshold": 0})


def test_first_join_and_rejoin(store, clock):
    member_id = _member(store)
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(EventType.MEMBER_JOIN, 1, member_id)

    asyncio.run(store.events.insert(member_id, None, EventType.MEMBER_JOIN, T0))
    assert _run(ev, "MEMBER_IS_FIRST_JOIN", ctx)
    assert not _run(ev, "MEMBER_IS_REJOIN", ctx)

    asyncio.run(store.events.insert(member_id, None, EventType.MEMBER_JOIN, T0))
    assert not _run(ev, "MEMBER_IS_FIRST_JOIN", ctx)
    assert _run(ev, "MEMBER_IS_REJOIN", ctx)


def test_role_diff_predicates(store, clock):
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(EventType.MEMBER_ROLE_CHANGE, 1, 1, roles_added="2,30", roles_removed="")
    assert _run(ev, "ROLE_WAS_ADDED", ctx, {"role_ext_id": 30})
    assert not _run(ev, "ROLE_WAS_ADDED", ctx, {"role_ext_id": 3})
    assert not _run(ev, "ROLE_WAS_REMOVED", ctx, {"role_ext_id": 2})


def test_lookup_failure_is_false(store, clock, caplog):
    async def broken(*args):
        raise ConnectionError("db down")

    store.member_roles.has_role = broken
    ev = MemberLookupEvaluator(store, clock)
    ctx = RuleContext(EventType.MESSAGE_CREATE, 1, 1)
    assert not _run(ev, "MEMBER_HAS_ROLE", ctx, {"role_ext_id": 2})
    assert "Lookup for MEMBER_HAS_ROLE failed" in caplog.text


# ── temporal ─────────────────────────────────────────────────────────────


def test_hour_in_range():
    assert hour_in_range(9, 9, 17)
    assert not hour_in_range(17, 9, 17)
    assert hour_in_range(23, 22, 2)
    assert hour_in_range(1, 22, 2)
    assert not hour_in_range(2, 22, 2)
    assert not hour_in_range(5, 5, 5)


def test_hour_and_day_follow_clock(store):
    # T0 is Monday 12:00 UTC
    clock = FakeClock()
    ev = TemporalEvaluator(store, clock)
    ctx = _msg()
    assert _run(ev, "HOUR_OF_DAY_BETWEEN", ctx, {"from": 12, "to": 13})
    assert _run(ev, "DAY_OF_WEEK_IS", ctx, {"day": "monday"})
    assert _run(ev, "DAY_OF_WEEK_IS", ctx, {"day": "Mon"})
    clock.advance(hours=13)
    assert _run(ev, "HOUR_OF_DAY_BETWEEN", ctx, {"from": 22, "to": 3})
    assert _run(ev, "DAY_OF_WEEK_IS", ctx, {"day": "TUESDAY"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "DAY_OF_WEEK_IS", ctx, {"day": "someday"})
    with pytest.raises(PredicateParameterError):
        _run(ev, "HOUR_OF_DAY_BETWEEN", ctx, {"from": 25, "to": 3})


def test_historic_temporal_uses_event_time(store, clock):
    ev = TemporalEvaluator(store, clock)
    ctx = _msg(created_at=T0 - timedelta(hours=10), source=HISTORIC)
    assert _run(ev, "HOUR_OF_DAY_BETWEEN", ctx, {"from": 2, "to": 3})


def test_seasons(store, clock):
    store.seasons.rows.append({"id": 1, "starts_at": T0 - timedelta(days=1), "ends_at": None})
    store.seasons.rows.append({"id": 2, "starts_at": T0 + timedelta(days=1), "ends_at": None})
    ev = TemporalEvaluator(store, clock)
    ctx = _msg()
    assert _run(ev, "SEASON_ACTIVE", ctx)
    assert _run(ev, "DURING_SEASON", ctx, {"season_id": 1})
    assert _run(ev, "NOT_DURING_SEASON", ctx, {"season_id": 2})
    assert not _run(ev, "DURING_SEASON", ctx, {"season_id": 2})
