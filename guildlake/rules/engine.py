"""Evaluate every candidate rule for one event."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence

from ..errors import PredicateParameterError
from ..infra.logging import structured_log
from ..store.models import Rule, RulePredicate
from ..util import utcnow
from .context import RuleContext
from .outcomes import OutcomeDispatcher
from .predicates import PredicateEvaluator, default_evaluators, parse_params
from .predicates.base import Clock

log = logging.getLogger(f"guildlake.{__name__}")

SKIPPED = "skipped"
FIRED = "fired"
ERRORED = "errored"


@dataclass(frozen=True)
class RuleResult:
    rule_id: int
    rule_name: str
    status: str
    reason: str | None = None


class RuleEngine:
    """Dedup gate, cooldown gate, AND-chained predicates, then outcomes.

    Each rule is evaluated independently: an exception in one rule is logged
    and reported as ``errored`` while the remaining rules still run.
    """

    def __init__(
        self,
        store,
        evaluators: Sequence[PredicateEvaluator] | None = None,
        dispatcher: OutcomeDispatcher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.clock = clock
        self.evaluators = list(evaluators) if evaluators is not None else default_evaluators(store, clock)
        self.dispatcher = dispatcher or OutcomeDispatcher()

    async def evaluate(self, ctx: RuleContext) -> list[RuleResult]:
        rules = await self.store.rules.find_enabled_by_event_type(ctx.event_type)
        if not rules:
            return []
        results = []
        for rule in rules:
            if not self._applies(rule, ctx):
                results.append(RuleResult(rule.id, rule.name, SKIPPED, f"not a {ctx.source} rule"))
                continue
            try:
                results.append(await self._evaluate_rule(rule, ctx))
            except Exception:
                log.exception(
                    "Rule %s (%s) failed for event %s", rule.id, rule.name, ctx.event_id
                )
                results.append(RuleResult(rule.id, rule.name, ERRORED, "exception"))
        return results

    @staticmethod
    def _applies(rule: Rule, ctx: RuleContext) -> bool:
        return rule.applies_historic if ctx.is_historic else rule.applies_live

    async def _evaluate_rule(self, rule: Rule, ctx: RuleContext) -> RuleResult:
        if await self.store.evaluations.count_by_rule_and_event(rule.id, ctx.event_id) > 0:
            return RuleResult(rule.id, rule.name, SKIPPED, "already evaluated")

        if rule.cooldown_seconds > 0 and await self._in_cooldown(rule, ctx):
            return RuleResult(rule.id, rule.name, SKIPPED, "cooldown")

        for predicate in await self.store.predicates.find_by_rule_id(rule.id):
            if not await self._check(rule, predicate, ctx):
                return RuleResult(rule.id, rule.name, SKIPPED, f"predicate {predicate.type} failed")

        async with self.store.transaction() as tx:
            evaluation_id = await tx.evaluations.insert(rule.id, ctx.event_id, ctx.member_id)
            if evaluation_id is None:
                # another worker recorded (rule, event) between the gate and here
                return RuleResult(rule.id, rule.name, SKIPPED, "already evaluated")
            for outcome in await tx.outcomes.find_by_rule_id(rule.id):
                await self.dispatcher.dispatch(tx, rule, outcome, ctx)

        structured_log(
            log,
            logging.INFO,
            "Rule fired",
            rule=rule.name,
            event_id=ctx.event_id,
            member_id=ctx.member_id,
            source=ctx.source,
        )
        return RuleResult(rule.id, rule.name, FIRED)

    async def _in_cooldown(self, rule: Rule, ctx: RuleContext) -> bool:
        window = timedelta(seconds=rule.cooldown_seconds)
        evaluations = self.store.evaluations
        if ctx.is_historic and ctx.created_at is not None:
            # replayed history is measured in event time, not wall-clock time
            count = await evaluations.count_by_rule_and_member_between(
                rule.id, ctx.member_id, ctx.created_at - window, ctx.created_at
            )
        else:
            count = await evaluations.count_recent_by_rule_and_member(
                rule.id, ctx.member_id, self.clock() - window
            )
        return count > 0

    def evaluator_for(self, predicate_type: str) -> PredicateEvaluator | None:
        for evaluator in self.evaluators:
            if evaluator.handles(predicate_type):
                return evaluator
        return None

    async def _check(self, rule: Rule, predicate: RulePredicate, ctx: RuleContext) -> bool:
        evaluator = self.evaluator_for(predicate.type)
        if evaluator is None:
            log.warning(
                "No evaluator for predicate type %s on rule %s; treating as failed",
                predicate.type,
                rule.name,
            )
            return False
        try:
            params = parse_params(predicate.type, predicate.parameters)
            return bool(await evaluator.evaluate(predicate.type, ctx, params))
        except PredicateParameterError as exc:
            log.warning("Rule %s predicate %s: %s", rule.name, predicate.id, exc.detail)
            return False
