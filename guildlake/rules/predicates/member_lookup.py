"""Predicates that need a fresh read from the store."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from ...errors import PredicateParameterError
from ...store.models import EventType
from ...util import snowflake_created_at, split_ids, utcnow
from ..context import RuleContext
from .base import Clock, TableEvaluator, as_ext_id, as_number, reference_time, require

log = logging.getLogger(f"guildlake.{__name__}")

SECONDS_PER_DAY = 86400

MEMBER_LOOKUP_PREDICATES = frozenset(
    {
        "MEMBER_HAS_ROLE",
        "MEMBER_NOT_HAS_ROLE",
        "MIN_SERVER_AGE_DAYS",
        "MIN_ACCOUNT_AGE_DAYS",
        "MEMBER_IS_FIRST_JOIN",
        "MEMBER_IS_REJOIN",
        "ROLE_WAS_ADDED",
        "ROLE_WAS_REMOVED",
    }
)


class MemberLookupEvaluator(TableEvaluator):
    """Role membership, member age, join history and role-change diffs.

    A failing store read makes the predicate false; it is logged and the rule
    simply does not fire.
    """

    table = MEMBER_LOOKUP_PREDICATES

    def __init__(self, store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        try:
            return await self._evaluate(predicate_type, ctx, params)
        except PredicateParameterError:
            raise
        except Exception:
            log.warning(
                "Lookup for %s failed (member=%s event=%s)",
                predicate_type,
                ctx.member_id,
                ctx.event_id,
                exc_info=True,
            )
            return False

    async def _evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        if predicate_type in ("MEMBER_HAS_ROLE", "MEMBER_NOT_HAS_ROLE"):
            role = int(as_ext_id(predicate_type, "role_ext_id", require(predicate_type, params, "role_ext_id")))
            has_role = await self.store.member_roles.has_role(ctx.member_id, role)
            return has_role if predicate_type == "MEMBER_HAS_ROLE" else not has_role

        if predicate_type == "MIN_SERVER_AGE_DAYS":
            threshold = as_number(predicate_type, "threshold", require(predicate_type, params, "threshold"))
            joined_at = ctx.member_joined_at
            if joined_at is None:
                member = await self.store.members.find_by_id(ctx.member_id)
                joined_at = member.joined_at if member else None
            if joined_at is None:
                return False
            age = reference_time(ctx, self.clock) - joined_at
            return age.total_seconds() / SECONDS_PER_DAY >= threshold

        if predicate_type == "MIN_ACCOUNT_AGE_DAYS":
            threshold = as_number(predicate_type, "threshold", require(predicate_type, params, "threshold"))
            if ctx.member_ext_id is None:
                return False
            age = reference_time(ctx, self.clock) - snowflake_created_at(ctx.member_ext_id)
            return age.total_seconds() / SECONDS_PER_DAY >= threshold

        if predicate_type in ("MEMBER_IS_FIRST_JOIN", "MEMBER_IS_REJOIN"):
            joins = await self.store.events.count_by_member_and_type(
                ctx.member_id, EventType.MEMBER_JOIN
            )
            first_join = joins <= 1
            return first_join if predicate_type == "MEMBER_IS_FIRST_JOIN" else not first_join

        role = as_ext_id(predicate_type, "role_ext_id", require(predicate_type, params, "role_ext_id"))
        changed = ctx.roles_added if predicate_type == "ROLE_WAS_ADDED" else ctx.roles_removed
        if changed is None:
            return False
        return role in split_ids(changed)
