from __future__ import annotations

import operator
from typing import Any, Mapping

from ...errors import PredicateParameterError
from ..context import RuleContext
from .base import TableEvaluator, as_number, require

OPERATORS = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
    "!=": operator.ne,
}

# predicate type -> (context field, default operator)
NUMERIC_PREDICATES: dict[str, tuple[str, str]] = {
    "MIN_CONTENT_LENGTH": ("content_length", ">="),
    "MAX_CONTENT_LENGTH": ("content_length", "<="),
    "MIN_ATTACHMENT_COUNT": ("attachment_count", ">="),
    "MIN_REACTION_COUNT": ("reaction_count", ">="),
    "MENTION_USER_COUNT_MAX": ("mention_user_count", "<="),
    "MEMBER_P_CURRENCY_MIN": ("p_currency", ">="),
    "MEMBER_P_CURRENCY_MAX": ("p_currency", "<="),
    "MEMBER_S_CURRENCY_MIN": ("s_currency", ">="),
    "MIN_EMBED_COUNT": ("embed_count", ">="),
    "MIN_SESSION_DURATION_MINUTES": ("session_duration_minutes", ">="),
}


class NumericThresholdEvaluator(TableEvaluator):
    """``field <operator> threshold``; ``field`` and ``operator`` are overridable."""

    table = NUMERIC_PREDICATES

    async def evaluate(
        self, predicate_type: str, ctx: RuleContext, params: Mapping[str, Any]
    ) -> bool:
        default_field, default_op = self.table[predicate_type]
        threshold = as_number(
            predicate_type, "threshold", require(predicate_type, params, "threshold")
        )
        field = str(params.get("field") or default_field)
        op_name = str(params.get("operator") or default_op)
        compare = OPERATORS.get(op_name)
        if compare is None:
            raise PredicateParameterError(predicate_type, f"unknown operator '{op_name}'")
        value = ctx.numeric_field(field)
        if value is None:
            return False
        return compare(value, threshold)
