"""Predicate evaluators, one class per predicate family."""
from __future__ import annotations

from ...util import utcnow
from .base import Clock, PredicateEvaluator, parse_params
from .boolean import BooleanFieldEvaluator
from .member_lookup import MemberLookupEvaluator
from .numeric import NumericThresholdEvaluator
from .string_match import StringMatchEvaluator
from .temporal import TemporalEvaluator


def default_evaluators(store, clock: Clock = utcnow) -> list[PredicateEvaluator]:
    """The built-in evaluators in lookup order."""
    return [
        BooleanFieldEvaluator(),
        NumericThresholdEvaluator(),
        StringMatchEvaluator(),
        MemberLookupEvaluator(store, clock),
        TemporalEvaluator(store, clock),
    ]


__all__ = [
    "BooleanFieldEvaluator",
    "MemberLookupEvaluator",
    "NumericThresholdEvaluator",
    "PredicateEvaluator",
    "StringMatchEvaluator",
    "TemporalEvaluator",
    "default_evaluators",
    "parse_params",
]
