"""Side effects of a fired rule."""
from __future__ import annotations

import logging

from ..store.models import Rule, RuleOutcome
from .context import RuleContext

log = logging.getLogger(f"guildlake.{__name__}")

CURRENCY = "CURRENCY"
ACHIEVEMENT = "ACHIEVEMENT"
ANNOUNCEMENT = "ANNOUNCEMENT"


class OutcomeDispatcher:
    """Runs one outcome against the store it is handed. Never raises for unknown types."""

    async def dispatch(self, store, rule: Rule, outcome: RuleOutcome, ctx: RuleContext) -> None:
        kind = (outcome.type or "").upper()
        if kind == CURRENCY:
            await self._currency(store, rule, outcome, ctx)
        elif kind in (ACHIEVEMENT, ANNOUNCEMENT):
            # TODO: deliver achievements/announcements once a Discord-side sink exists
            log.info(
                "%s outcome %s for rule %s member %s is not delivered yet",
                kind,
                outcome.id,
                rule.name,
                ctx.member_id,
            )
        else:
            log.warning(
                "Unknown outcome type %r on rule %s (outcome %s); ignoring",
                outcome.type,
                rule.name,
                outcome.id,
            )

    async def _currency(self, store, rule: Rule, outcome: RuleOutcome, ctx: RuleContext) -> None:
        p_delta = outcome.p_currency or 0
        s_delta = outcome.s_currency or 0
        if not p_delta and not s_delta:
            log.debug("Rule %s has a zero currency outcome; skipping", rule.name)
            return
        await store.members.add_currency(ctx.member_id, p_delta, s_delta)
        log.info(
            "Rule %s granted p=%+d s=%+d to member %s",
            rule.name,
            p_delta,
            s_delta,
            ctx.member_id,
        )
