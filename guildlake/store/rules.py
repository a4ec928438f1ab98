"""Rule definitions, the evaluation ledger and seasons."""
from __future__ import annotations

from datetime import datetime

from .base import Dao
from .models import Rule, RuleOutcome, RulePredicate, from_record


class RuleDao(Dao):
    async def find_enabled_by_event_type(self, event_type: str) -> list[Rule]:
        rows = await self.db.fetch(
            """
            SELECT id, name, description, event_type, enabled, applies_live,
                   applies_historic, cooldown_seconds
            FROM rules
            WHERE enabled = TRUE AND event_type = $1
            ORDER BY name, id
            """,
            event_type,
        )
        return [from_record(Rule, r) for r in rows]

    async def insert(
        self,
        name: str,
        event_type: str,
        *,
        description: str | None = None,
        enabled: bool = True,
        applies_live: bool = True,
        applies_historic: bool = False,
        cooldown_seconds: int = 0,
    ) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO rules (
                name, description, event_type, enabled, applies_live,
                applies_historic, cooldown_seconds
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING id
            """,
            name,
            description,
            event_type,
            enabled,
            applies_live,
            applies_historic,
            cooldown_seconds,
        )


class RulePredicateDao(Dao):
    async def find_by_rule_id(self, rule_id: int) -> list[RulePredicate]:
        rows = await self.db.fetch(
            """
            SELECT id, rule_id, type, parameters, sort_order
            FROM rule_predicates WHERE rule_id = $1
            ORDER BY sort_order, id
            """,
            rule_id,
        )
        return [from_record(RulePredicate, r) for r in rows]

    async def insert(self, rule_id: int, type: str, parameters: str | None, sort_order: int) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO rule_predicates (rule_id, type, parameters, sort_order)
            VALUES ($1, $2, $3, $4)
            RETURNING id
            """,
            rule_id,
            type,
            parameters,
            sort_order,
        )


class RuleOutcomeDao(Dao):
    async def find_by_rule_id(self, rule_id: int) -> list[RuleOutcome]:
        rows = await self.db.fetch(
            """
            SELECT id, rule_id, type, p_currency, s_currency, parameters
            FROM rule_outcomes WHERE rule_id = $1
            ORDER BY id
            """,
            rule_id,
        )
        return [from_record(RuleOutcome, r) for r in rows]

    async def insert(
        self,
        rule_id: int,
        type: str,
        p_currency: int | None = None,
        s_currency: int | None = None,
        parameters: str | None = None,
    ) -> int:
        return await self.db.fetchval(
            """
            INSERT INTO rule_outcomes (rule_id, type, p_currency, s_currency, parameters)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id
            """,
            rule_id,
            type,
            p_currency,
            s_currency,
            parameters,
        )


class RuleEvaluationDao(Dao):
    async def insert(self, rule_id: int, event_id: int, member_id: int) -> int | None:
        """Record a firing. Returns None when ``(rule, event)`` is already recorded."""
        return await self.db.fetchval(
            """
            INSERT INTO rule_evaluations (rule_id, event_id, member_id)
            VALUES ($1, $2, $3)
            ON CONFLICT (rule_id, event_id) DO NOTHING
            RETURNING id
            """,
            rule_id,
            event_id,
            member_id,
        )

    async def count_by_rule_and_event(self, rule_id: int, event_id: int) -> int:
        count = await self.db.fetchval(
            "SELECT COUNT(*) FROM rule_evaluations WHERE rule_id = $1 AND event_id = $2",
            rule_id,
            event_id,
        )
        return int(count or 0)

    async def count_recent_by_rule_and_member(
        self, rule_id: int, member_id: int, since: datetime
    ) -> int:
        """Firings for a member since ``since`` by wall-clock firing time."""
        count = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM rule_evaluations
            WHERE rule_id = $1 AND member_id = $2 AND fired_at > $3
            """,
            rule_id,
            member_id,
            since,
        )
        return int(count or 0)

    async def count_by_rule_and_member_between(
        self, rule_id: int, member_id: int, start: datetime, end: datetime
    ) -> int:
        """Firings whose triggering event happened in ``(start, end]``."""
        count = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM rule_evaluations re
            JOIN events e ON e.id = re.event_id
            WHERE re.rule_id = $1 AND re.member_id = $2
              AND e.created_at > $3 AND e.created_at <= $4
            """,
            rule_id,
            member_id,
            start,
            end,
        )
        return int(count or 0)


class SeasonDao(Dao):
    async def count_active_season(self, season_id: int, now: datetime) -> int:
        count = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM seasons
            WHERE id = $1 AND starts_at <= $2 AND (ends_at IS NULL OR ends_at > $2)
            """,
            season_id,
            now,
        )
        return int(count or 0)

    async def count_active_seasons(self, now: datetime) -> int:
        count = await self.db.fetchval(
            """
            SELECT COUNT(*) FROM seasons
            WHERE starts_at <= $1 AND (ends_at IS NULL OR ends_at > $1)
            """,
            now,
        )
        return int(count or 0)
